from __future__ import annotations

import pickle

import allure
import pytest

from asset_optimizer.optimizer.minify import minify, run_serialized
from asset_optimizer.optimizer.models import MinifyError, MinifyOutput, MinifyRequest, normalize_output

pytestmark = [
    allure.epic("Asset Optimization"),
    allure.feature("Minify Primitive"),
]

_SOURCE = "/*! lib v1 | MIT */\n// plain note\nvar answer = 42;\n"


def test_minify_extracts_license_comments_by_default() -> None:
    output = minify(MinifyRequest(name="app.js", input=_SOURCE))

    assert output.code == "var answer=42;"
    assert output.extracted_comments == ["/*! lib v1 | MIT */"]
    assert output.map is None


def test_minify_recognizes_license_annotations() -> None:
    source = "/**\n * @license Apache-2.0\n */\n/* internal */\nrun();"

    output = minify(MinifyRequest(name="app.js", input=source))

    assert output.extracted_comments == ["/**\n * @license Apache-2.0\n */"]


def test_minify_all_condition_extracts_every_comment_once() -> None:
    source = "/*! a */\n// b\n/*! a */\nrun();"

    output = minify(MinifyRequest(name="app.js", input=source, extract_comments="all"))

    assert output.extracted_comments == ["/*! a */", "// b"]


def test_minify_regex_condition() -> None:
    source = "/* @foo keep */\n/*! drop */\nrun();"

    output = minify(MinifyRequest(name="app.js", input=source, extract_comments="@foo"))

    assert output.extracted_comments == ["/* @foo keep */"]


def test_minify_keeps_bang_comments_inline_when_extraction_disabled() -> None:
    output = minify(MinifyRequest(name="app.js", input=_SOURCE, extract_comments=False))

    assert output.extracted_comments == []
    assert "/*! lib v1 | MIT */" in output.code
    assert "plain note" not in output.code


def test_minify_ignores_comment_markers_inside_strings() -> None:
    output = minify(MinifyRequest(name="app.js", input="var s = '/*! not a comment */';"))

    assert output.extracted_comments == []


def test_minify_preserves_shebang() -> None:
    source = "#!/usr/bin/env node\n/*! cli v2 */\nrun();\n"

    output = minify(MinifyRequest(name="bin/cli.js", input=source))

    assert output.code.startswith("#!/usr/bin/env node\n")
    assert output.extracted_comments == ["/*! cli v2 */"]


def test_minify_reports_unterminated_comment_position() -> None:
    with pytest.raises(MinifyError) as excinfo:
        minify(MinifyRequest(name="app.js", input="#!/usr/bin/env node\nvar a = 1;\n  /* oops"))

    error = excinfo.value
    assert error.message == "Unterminated comment"
    assert (error.line, error.col) == (3, 2)
    assert error.stack is not None
    assert "app.js:3:2" in error.stack


def test_minify_error_survives_pickling() -> None:
    error = MinifyError("Unexpected token", line=2, col=5, stack="SyntaxError: Unexpected token")

    restored = pickle.loads(pickle.dumps(error))

    assert isinstance(restored, MinifyError)
    assert (restored.message, restored.line, restored.col) == ("Unexpected token", 2, 5)
    assert restored.stack == "SyntaxError: Unexpected token"


def test_run_serialized_returns_plain_dict() -> None:
    payload = MinifyRequest(name="app.js", input=_SOURCE, minifier_options={"ecma": 5}).to_json()

    result = run_serialized(payload)

    assert result == {
        "code": "var answer=42;",
        "map": None,
        "extracted_comments": ["/*! lib v1 | MIT */"],
    }


def test_normalize_output_accepts_camel_case_comments() -> None:
    output = normalize_output({"code": "x", "extractedComments": ["/*! a */"]})

    assert output == MinifyOutput(code="x", extracted_comments=["/*! a */"])
    with pytest.raises(TypeError):
        normalize_output({"map": None})
    with pytest.raises(TypeError):
        normalize_output("x")


def test_request_json_round_trip_rejects_bad_payload() -> None:
    request = MinifyRequest(name="a.js", input="x", extract_comments=False)

    assert MinifyRequest.from_json(request.to_json()) == request
    with pytest.raises(TypeError):
        MinifyRequest.from_json('{"name": 1, "input": "x"}')


def test_regex_literal_with_comment_opener_is_valid_input() -> None:
    source = 'function trim(p) { return p.replace(/\\/*$/, ""); }\n'

    output = minify(MinifyRequest(name="a.js", input=source))

    assert output.extracted_comments == []
    assert output.code.startswith("function trim(p){return p.replace(/\\/*$/,")


def test_license_after_regex_literal_is_extracted() -> None:
    source = 'var t = p.replace(/\\/*$/, "");\n/*! MIT licensed lib */\nvar x = 1;\n'

    output = minify(MinifyRequest(name="a.js", input=source))

    assert output.extracted_comments == ["/*! MIT licensed lib */"]
    assert "MIT licensed lib" not in output.code


def test_regex_after_keyword_and_division_are_told_apart() -> None:
    source = (
        "function f(s) { return /[/*]+/.test(s); }\n"
        "var half = total / 2; /*! half */\n"
    )

    output = minify(MinifyRequest(name="a.js", input=source))

    assert output.extracted_comments == ["/*! half */"]


def test_license_comments_stay_inline_when_extraction_disabled() -> None:
    source = "/** @license MIT */\n/* internal */\nvar a = 1;\n"

    output = minify(MinifyRequest(name="a.js", input=source, extract_comments=False))

    assert output.code == "/** @license MIT */\nvar a=1;"
    assert output.extracted_comments == []


def test_non_extracted_bang_comment_stays_inline() -> None:
    source = "/*! keep me */\n/** @license MIT */\nvar a = 1;\n"

    output = minify(MinifyRequest(name="a.js", input=source, extract_comments="@license"))

    assert output.extracted_comments == ["/** @license MIT */"]
    assert output.code == "/*! keep me */\nvar a=1;"


def test_preserved_comments_follow_shebang() -> None:
    source = "#!/usr/bin/env node\n/** @preserve cli */\nrun();\n"

    output = minify(MinifyRequest(name="cli.js", input=source, extract_comments=False))

    assert output.code == "#!/usr/bin/env node\n/** @preserve cli */\nrun();"


def test_comments_minifier_option_selects_inline_comments() -> None:
    source = "/*! lib */\n// note\nvar a = 1;\n"

    dropped = minify(
        MinifyRequest(
            name="a.js",
            input=source,
            extract_comments=False,
            minifier_options={"comments": False},
        ),
    )
    kept = minify(
        MinifyRequest(
            name="a.js",
            input=source,
            extract_comments=False,
            minifier_options={"comments": "all"},
        ),
    )

    assert dropped.code == "var a=1;"
    assert kept.code == "/*! lib */\n// note\nvar a=1;"
