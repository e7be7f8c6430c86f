import jinja2
import pytest

from apitap.errors import TemplateError
from apitap.templating import (
    RenderCapture,
    build_env_with_captures,
    list_sql_templates,
    render_one,
)


def test_build_env_with_captures(tmp_path):
    env = build_env_with_captures(str(tmp_path), RenderCapture())
    with pytest.raises(jinja2.TemplateNotFound):
        env.get_template("nonexistent.sql")


def test_render_missing_template_raises(tmp_path):
    capture = RenderCapture()
    env = build_env_with_captures(tmp_path, capture)
    with pytest.raises(TemplateError):
        render_one(env, capture, "nonexistent.sql")


def test_sink_function_captures_name(tmp_path):
    (tmp_path / "test.sql").write_text(
        '{{ sink(name="postgres_target") }}\nSELECT * FROM users;\n'
    )
    capture = RenderCapture()
    env = build_env_with_captures(str(tmp_path), capture)

    result = render_one(env, capture, "test.sql")

    assert result.capture.sink == "postgres_target"
    assert "SELECT * FROM users" in result.sql


def test_use_source_function_captures_name(tmp_path):
    (tmp_path / "test.sql").write_text(
        '{{ use_source("api_users") }}\n{{ sink(name="postgres_target") }}\n'
    )
    capture = RenderCapture()
    env = build_env_with_captures(str(tmp_path), capture)

    result = render_one(env, capture, "test.sql")

    assert result.capture.source == "api_users"
    assert result.capture.sink == "postgres_target"
    assert "api_users" in result.sql


def test_render_one_clears_previous_captures(tmp_path):
    (tmp_path / "test1.sql").write_text(
        '{{ sink(name="sink1") }}\n{{ use_source("source1") }}\n'
    )
    (tmp_path / "test2.sql").write_text("SELECT 1;")
    capture = RenderCapture()
    env = build_env_with_captures(str(tmp_path), capture)

    result1 = render_one(env, capture, "test1.sql")
    assert result1.capture.sink == "sink1"
    assert result1.capture.source == "source1"

    result2 = render_one(env, capture, "test2.sql")
    assert result2.capture.sink == ""
    assert result2.capture.source == ""
    assert result1.capture.sink == "sink1"


def test_sink_without_name_is_template_error(tmp_path):
    (tmp_path / "bad.sql").write_text("{{ sink() }}")
    capture = RenderCapture()
    env = build_env_with_captures(tmp_path, capture)
    with pytest.raises(TemplateError):
        render_one(env, capture, "bad.sql")


def test_capture_clear():
    capture = RenderCapture(sink="a", source="b")
    capture.clear()
    assert (capture.sink, capture.source) == ("", "")


def test_list_sql_templates_finds_all_sql_files(tmp_path):
    (tmp_path / "query1.sql").write_text("SELECT 1;")
    (tmp_path / "query2.sql").write_text("SELECT 2;")
    subdir = tmp_path / "subdir"
    subdir.mkdir()
    (subdir / "query3.sql").write_text("SELECT 3;")
    (tmp_path / "readme.txt").write_text("Not SQL")

    templates = list_sql_templates(tmp_path)

    assert len(templates) == 3
    assert "query1.sql" in templates
    assert "query2.sql" in templates
    assert "subdir/query3.sql" in templates


def test_list_sql_templates_empty_directory(tmp_path):
    assert list_sql_templates(tmp_path) == []


def test_list_sql_templates_missing_directory(tmp_path):
    assert list_sql_templates(tmp_path / "absent") == []


def test_list_sql_templates_case_insensitive(tmp_path):
    (tmp_path / "query1.sql").write_text("SELECT 1;")
    (tmp_path / "query2.SQL").write_text("SELECT 2;")
    (tmp_path / "query3.Sql").write_text("SELECT 3;")

    assert len(list_sql_templates(tmp_path)) == 3


def test_list_sql_templates_sorted(tmp_path):
    for name in ("zebra.sql", "apple.sql", "banana.sql"):
        (tmp_path / name).write_text("SELECT 1;")

    templates = list_sql_templates(tmp_path)

    assert templates == ["apple.sql", "banana.sql", "zebra.sql"]


def test_listed_templates_render(tmp_path):
    subdir = tmp_path / "nested"
    subdir.mkdir()
    (subdir / "q.sql").write_text("SELECT 9;")
    capture = RenderCapture()
    env = build_env_with_captures(tmp_path, capture)

    (name,) = list_sql_templates(tmp_path)
    assert render_one(env, capture, name).sql == "SELECT 9;"


def test_rendered_sql_contains_name(tmp_path):
    sql_content = "SELECT * FROM table;"
    (tmp_path / "myquery.sql").write_text(sql_content)
    capture = RenderCapture()
    env = build_env_with_captures(str(tmp_path), capture)

    result = render_one(env, capture, "myquery.sql")

    assert result.name == "myquery.sql"
    assert result.sql.strip() == sql_content


def test_render_one_with_template_variables(tmp_path):
    (tmp_path / "test.sql").write_text("SELECT * FROM users LIMIT 10;")
    capture = RenderCapture()
    env = build_env_with_captures(str(tmp_path), capture)

    result = render_one(env, capture, "test.sql")

    assert "LIMIT 10" in result.sql