import pytest
import yaml

from mdflow.converter import convert_paste
from mdflow.errors import UnknownTemplateError
from mdflow.matrix import parse
from mdflow.render import get_template_names
from mdflow.validation import ValidationRules

TABLE = (
    "ID\tFeature\tScenario\tExpected\tOwner\n"
    "TC-1\tLogin\tValid password\tDashboard shown\tAlice\n"
    "TC-2\tLogin\tWrong password\tError shown\tBob"
)


def _normalise(text):
    return " ".join(text.split())


def _front_matter(markdown):
    _, header, _ = markdown.split("---\n", 2)
    return yaml.safe_load(header)


@pytest.mark.parametrize("template", ["spec", "table"])
def test_every_cell_appears_in_output(template):
    result = convert_paste(TABLE, template)
    rendered = _normalise(result.mdflow)
    for line in TABLE.split("\n"):
        for cell in line.split("\t"):
            assert _normalise(cell) in rendered


def test_meta_describes_conversion():
    result = convert_paste(TABLE, "spec")

    assert result.meta["input_type"] == "table"
    assert result.meta["template"] == "spec"
    assert result.meta["total_rows"] == 2
    assert result.meta["rows_by_feature"] == {"Login": 2}
    assert result.meta["unmapped_columns"] == ["Owner"]
    assert result.meta["column_map"]["Scenario"] == "scenario"
    assert "valid" not in result.meta
    assert any("Owner" in w for w in result.warnings)


def test_front_matter_is_yaml():
    meta = _front_matter(convert_paste(TABLE, "table").mdflow)
    assert meta == {"title": "Converted Spec", "input_type": "table", "template": "table", "total_rows": 2}


def test_default_template_is_spec():
    assert convert_paste(TABLE, "default").meta["template"] == "spec"
    assert convert_paste(TABLE).meta["template"] == "spec"


def test_unknown_template_is_rejected():
    with pytest.raises(UnknownTemplateError) as excinfo:
        convert_paste(TABLE, "fancy")
    assert excinfo.value.available == ["spec", "table"]


def test_template_names():
    assert get_template_names() == ["spec", "table"]


def test_validation_warnings_never_block_rendering():
    rules = ValidationRules(required_fields=("notes",))
    result = convert_paste(TABLE, "spec", rules=rules)

    assert result.meta["valid"] is False
    assert result.meta["validation_warnings"] == 2
    assert sum("VALIDATION_REQUIRED" in w for w in result.warnings) == 2
    assert "Dashboard shown" in result.mdflow


def test_spec_template_groups_rows_and_lists_extra_columns():
    markdown = convert_paste(TABLE, "spec").mdflow

    assert "## Login" in markdown
    assert "#### Valid password" in markdown
    assert "- **Expected**: Dashboard shown" in markdown
    assert "- Owner -> _unmapped_" in markdown
    assert "- **Owner**: Alice" in markdown


def test_table_template_flattens_newlines_and_escapes_pipes():
    content = 'Feature,Notes\nLogin,"a|b\nc"'
    markdown = convert_paste(content, "table").mdflow
    assert "| Login | a\\|b c |" in markdown
    assert "<br>" not in markdown


def test_table_template_output_parses_back_to_the_source_cells():
    content = 'ID,Feature,Notes\nTC-1,Login,"first line\nsecond line"\nTC-2,Logout,"x|y"'
    markdown = convert_paste(content, "table").mdflow

    table = "\n".join(line for line in markdown.splitlines() if line.startswith("|"))
    assert [list(row) for row in parse(table)] == [
        ["ID", "Feature", "Notes"],
        ["TC-1", "Login", "first line second line"],
        ["TC-2", "Logout", "x|y"],
    ]


def test_rows_above_the_header_row_render_as_preamble():
    content = "Sprint 4 export\nFeature\tExpected\nLogin\tOK"
    for template in ("spec", "table"):
        markdown = convert_paste(content, template).mdflow
        assert "## Preamble\n\n- Sprint 4 export" in markdown
    assert "| Feature | Expected |" in convert_paste(content, "table").mdflow


def test_prose_renders_sections_for_any_template():
    content = "> ## Summary\n> Users can log in\n\nRaw message: from chat"
    for template in ("spec", "table"):
        markdown = convert_paste(content, template).mdflow
        assert "# Converted Spec" in markdown
        assert "## Summary\n\nUsers can log in" in markdown
        assert "## Raw Message\n\nfrom chat" in markdown
