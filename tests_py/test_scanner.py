from __future__ import annotations

from hyperbind.config import CompileConfig
from hyperbind.scanner import scan
from hyperbind.tokens import TagKind


def _summarize(tokens):
    return [(token.kind, token.name) for token in tokens]


class TestScan:

    def test_empty_element(self):
        tokens = scan('<div></div>')

        assert _summarize(tokens) == [
            (TagKind.OPEN, 'div'),
            (TagKind.CLOSE, 'div')]
        assert tokens[0].start == 0
        assert tokens[0].end == 5
        assert tokens[1].start == 5
        assert tokens[1].end == 11
        assert tokens[1].raw_text == '</div>'

    def test_void_and_self_closing(self):
        tokens = scan('<br><img src="a.png"><my-widget /><input/>')

        assert _summarize(tokens) == [
            (TagKind.SELF, 'br'),
            (TagKind.SELF, 'img'),
            (TagKind.SELF, 'my-widget'),
            (TagKind.SELF, 'input')]

    def test_custom_void_tags(self):
        tokens = scan('<slot>', CompileConfig(void_tags=frozenset({'slot'})))

        assert _summarize(tokens) == [(TagKind.SELF, 'slot')]

    def test_quoted_attribute_values_are_opaque(self):
        """Angle brackets within quoted attribute values must never end
        the tag.
        """
        template = '<div title="a > b" data-x=\'<p>\'></div>'
        tokens = scan(template)

        assert _summarize(tokens) == [
            (TagKind.OPEN, 'div'),
            (TagKind.CLOSE, 'div')]
        assert tokens[0].raw_text == '<div title="a > b" data-x=\'<p>\'>'

    def test_expression_attribute_values_are_opaque(self):
        template = '<button onclick=${() => core.save()}>Save</button>'
        tokens = scan(template)

        assert _summarize(tokens) == [
            (TagKind.OPEN, 'button'),
            (TagKind.CLOSE, 'button')]
        assert tokens[0].raw_text == '<button onclick=${() => core.save()}>'

    def test_quotes_within_quoted_expression(self):
        template = '<div title="${flag ? "a > b" : "c < d"}"></div>'
        tokens = scan(template)

        assert _summarize(tokens) == [
            (TagKind.OPEN, 'div'),
            (TagKind.CLOSE, 'div')]

    def test_declarations_are_discarded(self):
        template = '<!DOCTYPE html><!-- <p> --><?xml version="1.0"?><p></p>'
        tokens = scan(template)

        assert _summarize(tokens) == [
            (TagKind.OPEN, 'p'),
            (TagKind.CLOSE, 'p')]

    def test_invalid_names_are_text(self):
        tokens = scan('<p>1 <2 and <-x</p>')

        assert _summarize(tokens) == [
            (TagKind.OPEN, 'p'),
            (TagKind.CLOSE, 'p')]

    def test_inline_expression_is_not_a_tag(self):
        tokens = scan('<p>${a<b}</p>')

        assert _summarize(tokens) == [
            (TagKind.OPEN, 'p'),
            (TagKind.CLOSE, 'p')]

    def test_names_are_lowercased(self):
        tokens = scan('<DIV></Div>')

        assert _summarize(tokens) == [
            (TagKind.OPEN, 'div'),
            (TagKind.CLOSE, 'div')]

    def test_namespaced_name(self):
        tokens = scan('<svg><svg:use href="#x"/></svg>')

        assert _summarize(tokens) == [
            (TagKind.OPEN, 'svg'),
            (TagKind.SELF, 'svg:use'),
            (TagKind.CLOSE, 'svg')]

    def test_dynamic_name(self):
        tokens = scan('<meta-${core.tag}></meta-${core.tag}>')

        assert _summarize(tokens) == [
            (TagKind.OPEN, 'meta-${core.tag}'),
            (TagKind.CLOSE, 'meta-${core.tag}')]
        assert tokens[0].is_dynamic
        assert not scan('<div></div>')[0].is_dynamic

    def test_nested_templates_are_scanned(self):
        template = '<ul>${list.map(name => html`<li>${name}</li>`)}</ul>'
        tokens = scan(template)

        assert _summarize(tokens) == [
            (TagKind.OPEN, 'ul'),
            (TagKind.OPEN, 'li'),
            (TagKind.CLOSE, 'li'),
            (TagKind.CLOSE, 'ul')]

    def test_ternary_templates_are_scanned(self):
        template = (
            '<div>${c ? html`<a></a>` : d ? html`<b></b>` '
            + ': html`<i></i>`}</div>')
        tokens = scan(template)

        assert [token.name for token in tokens] == [
            'div', 'a', 'a', 'b', 'b', 'i', 'i', 'div']

    def test_unterminated_tag_is_text(self):
        tokens = scan('<p>a <b')

        assert _summarize(tokens) == [(TagKind.OPEN, 'p')]

    def test_well_formed_input_is_balanced(self):
        """For well-formed input, every open tag has exactly one matching
        close tag with the same name.
        """
        template = (
            '<section><h1>${context.title}</h1>'
            + '${context.items.map(item => html`<article>'
            + '<p class="x">${item.body}</p><br></article>`)}'
            + '${context.flag && html`<footer><span>f</span></footer>`}'
            + '</section>')
        stack = []
        for token in scan(template):
            if token.kind is TagKind.OPEN:
                stack.append(token.name)
            elif token.kind is TagKind.CLOSE:
                assert stack.pop() == token.name

        assert not stack

    def test_offsets_are_ordered_and_exact(self):
        template = '<a href="#">x</a><br>'
        tokens = scan(template)

        for token in tokens:
            assert template[token.start:token.end] == token.raw_text

        starts = [token.start for token in tokens]
        assert starts == sorted(starts)
