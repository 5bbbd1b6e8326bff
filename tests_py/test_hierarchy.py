from __future__ import annotations

import pytest

from hyperbind.exceptions import StructuralError
from hyperbind.extractor import extract
from hyperbind.hierarchy import build
from hyperbind.nodes import Condition
from hyperbind.nodes import Element
from hyperbind.nodes import Logical
from hyperbind.nodes import Map
from hyperbind.nodes import Meta
from hyperbind.nodes import Text
from hyperbind.scanner import scan
from hyperbind.tokens import CondClose
from hyperbind.tokens import CondOpen
from hyperbind.tokens import TagKind
from hyperbind.tokens import TagToken


def _build(template):
    return build(extract(template, scan(template)))


class TestBuild:

    def test_empty_element(self):
        assert _build('<div></div>') == (
            Element(tag='div', raw_attributes=''),)

    def test_text_placement(self):
        nodes = _build('<p>Hello <b>world</b>!</p>')

        assert nodes == (
            Element(
                tag='p',
                raw_attributes='',
                children=(
                    Text('Hello '),
                    Element(
                        tag='b',
                        raw_attributes='',
                        children=(Text('world'),)),
                    Text('!'))),)

    def test_raw_attributes(self):
        nodes = _build('<a href="#" class="x"></a><img src="y.png" />')

        assert [node.raw_attributes for node in nodes] == [
            'href="#" class="x"',
            'src="y.png"']

    def test_multiple_roots(self):
        nodes = _build('<br><hr>text')

        assert nodes == (
            Element(tag='br', raw_attributes=''),
            Element(tag='hr', raw_attributes=''),
            Text('text'))

    def test_map_excludes_invocation_site_text(self):
        nodes = _build(
            '<ul>\n  ${list.map(x => html`\n    <li>${x}</li>\n  `)}\n</ul>')

        ul, = nodes
        assert isinstance(ul, Element)
        map_node, = ul.children
        assert isinstance(map_node, Map)
        assert map_node.source == 'list'
        assert map_node.signature.item_alias == 'x'
        assert map_node.children == (
            Element(
                tag='li',
                raw_attributes='',
                children=(Text('${x}'),)),)

    def test_map_body_with_multiple_roots(self):
        nodes = _build('${list.map(x => html`<dt></dt><dd></dd>`)}')

        map_node, = nodes
        assert isinstance(map_node, Map)
        assert [child.tag for child in map_node.children] == ['dt', 'dd']

    def test_condition(self):
        nodes = _build('<div>${c ? html`<a></a>` : html`<b></b>`}</div>')

        div, = nodes
        assert div.children == (
            Condition(
                guard='c',
                true_branch=Element(tag='a', raw_attributes=''),
                false_branch=Element(tag='b', raw_attributes='')),)

    def test_else_if_nests_in_false_branch(self):
        nodes = _build(
            '${a ? html`<i></i>` : b ? html`<b></b>` : html`<u></u>`}')

        assert nodes == (
            Condition(
                guard='a',
                true_branch=Element(tag='i', raw_attributes=''),
                false_branch=Condition(
                    guard='b',
                    true_branch=Element(tag='b', raw_attributes=''),
                    false_branch=Element(tag='u', raw_attributes=''))),)

    def test_empty_branch_is_empty_text(self):
        nodes = _build('${c ? html`<a></a>` : null}')

        assert nodes == (
            Condition(
                guard='c',
                true_branch=Element(tag='a', raw_attributes=''),
                false_branch=Text('')),)

    def test_inline_branch_is_text(self):
        nodes = _build('${c ? html`<a></a>` : context.fallback}')

        condition, = nodes
        assert isinstance(condition, Condition)
        assert condition.false_branch == Text('${context.fallback}')

    def test_logical(self):
        nodes = _build('${a && b && html`<div class="x">y</div>`}')

        assert nodes == (
            Logical(
                guard='a && b',
                child=Element(
                    tag='div',
                    raw_attributes='class="x"',
                    children=(Text('y'),))),)

    def test_implicit_condition_in_map(self):
        nodes = _build(
            '${items.map(item => item.ok ? html`<a></a>` '
            + ': html`<b></b>`)}')

        map_node, = nodes
        assert isinstance(map_node, Map)
        assert map_node.children == (
            Condition(
                guard='item.ok',
                true_branch=Element(tag='a', raw_attributes=''),
                false_branch=Element(tag='b', raw_attributes='')),)

    def test_meta(self):
        nodes = _build('<meta-${core.tag} x="1"><p></p></meta-${core.tag}>')

        assert nodes == (
            Meta(
                tag_expr='meta-${core.tag}',
                raw_attributes='x="1"',
                children=(Element(tag='p', raw_attributes=''),)),)

    def test_unclosed_element(self):
        with pytest.raises(StructuralError) as exc_info:
            _build('<div><p></p>')

        assert exc_info.value.offset == 0
        assert 'at offset 0' in str(exc_info.value)

    def test_mismatched_close(self):
        with pytest.raises(StructuralError) as exc_info:
            _build('<div></span>')

        assert exc_info.value.offset == 5
        assert exc_info.value.__notes__

    def test_close_without_open(self):
        with pytest.raises(StructuralError):
            _build('</div>')

    def test_branch_with_multiple_roots(self):
        with pytest.raises(StructuralError):
            _build('${c ? html`<a></a><b></b>` : null}')

    def test_unclosed_condition(self):
        stream = [
            CondOpen(expr_text='c', start=0, end=5),
            TagToken(
                kind=TagKind.SELF, name='br', raw_text='<br>', start=5,
                end=9)]

        with pytest.raises(StructuralError):
            build(stream)

    def test_condition_without_else(self):
        stream = [
            CondOpen(expr_text='c', start=0, end=5),
            TagToken(
                kind=TagKind.SELF, name='br', raw_text='<br>', start=5,
                end=9),
            CondClose(start=9, end=10)]

        with pytest.raises(StructuralError):
            build(stream)

    def test_unknown_token(self):
        with pytest.raises(TypeError):
            build(['<div>'])
