"""Tests for the HTML / single-file-component chunker."""

from __future__ import annotations

from codeshift.ingest.html_chunker import HtmlChunker, construct_name

ANGULAR_PAGE = """\
<html>
<body>
<div>{{ x }}</div>
<script>
angular.module('app').controller('MainCtrl', function() {
  var a = 1;
});
</script>
<style>
.a { color: red; }
</style>
</body>
</html>
"""


def test_sections_and_framework_construct() -> None:
    chunks = HtmlChunker().chunk("index.html", ANGULAR_PAGE)
    assert [(c.start_line, c.end_line, c.kind, c.name) for c in chunks] == [
        (1, 3, "template", "template_section"),
        (4, 4, "script", "script_section"),
        (5, 8, "framework-construct", "controller_MainCtrl"),
        (9, 11, "style", "style_section"),
        (12, 13, "template", "template_section"),
    ]


def test_chunks_cover_verbatim_lines() -> None:
    lines = ANGULAR_PAGE.splitlines()
    for chunk in HtmlChunker().chunk("index.html", ANGULAR_PAGE):
        assert chunk.content == "\n".join(lines[chunk.start_line - 1 : chunk.end_line])


def test_construct_names() -> None:
    assert construct_name("app.service('Api', fn)") == "service_Api"
    assert construct_name("x.directive(factory)") == "angularjs_component"
    assert construct_name("export default { name: 'TodoList',") == "vue_TodoList"
    assert construct_name("  methods: {") == "vue_methods"
    assert construct_name("export default {") == "vue_component"


def test_empty_markup() -> None:
    assert HtmlChunker().chunk("a.vue", "\n \n") == []
