from __future__ import annotations

import pytest

from hyperbind import CompileConfig
from hyperbind import StructuralError
from hyperbind import UnknownRootError
from hyperbind import compile_template
from hyperbind import serialize_json
from hyperbind.nodes import Element


class TestCompileTemplate:

    def test_empty_element(self):
        compiled = compile_template('<div></div>')

        assert compiled.nodes == (
            Element(tag='div', raw_attributes='', attributes={}),)
        assert compiled.errors == ()
        assert compiled.serialize() == [{'type': 'el', 'tag': 'div'}]

    def test_map(self):
        compiled = compile_template(
            '<ul>${list.map(name => html`<li>${name}</li>`)}</ul>',
            CompileConfig(default_root='context'))

        assert compiled.serialize() == [{
            'type': 'el',
            'tag': 'ul',
            'child': [{
                'type': 'map',
                'data': '/context/list',
                'child': [{
                    'type': 'el',
                    'tag': 'li',
                    'child': [{'type': 'text', 'data': '[item]'}]}]}]}]

    def test_title_attribute(self):
        compiled = compile_template(
            '<div title="${flag ? "a > b" : "c < d"}"></div>',
            CompileConfig(default_root='context'))

        assert compiled.serialize() == [{
            'type': 'el',
            'tag': 'div',
            'string': {
                'title': {
                    'data': '/context/flag',
                    'expr': '${[0] ? "a > b" : "c < d"}'}}}]

    def test_logical(self):
        compiled = compile_template(
            '${a && b && html`<div class="x">y</div>`}',
            CompileConfig(default_root='context'))

        assert compiled.serialize() == [{
            'type': 'log',
            'data': ['/context/a', '/context/b'],
            'expr': '${[0]} && ${[1]}',
            'child': [{
                'type': 'el',
                'tag': 'div',
                'child': [{'type': 'text', 'value': 'y'}],
                'string': {'class': 'x'}}]}]

    def test_whitespace_around_branches(self):
        """Branches padded with whitespace still have a single root
        node, and spaces between tags don't become text nodes.
        """
        compiled = compile_template(
            '<p><b>a</b> <i>b</i></p>'
            + '${state.on && html` <b>x</b> `}'
            + '${state.on ? html` <i>y</i> ` : html` <u>z</u> `}')

        p, logical, condition = compiled.serialize()
        assert [child['tag'] for child in p['child']] == ['b', 'i']
        assert logical == {
            'type': 'log',
            'data': '/state/on',
            'child': [{
                'type': 'el',
                'tag': 'b',
                'child': [{'type': 'text', 'value': 'x'}]}]}
        assert [branch['tag'] for branch in condition['child']] == [
            'i', 'u']

    def test_map_as_logical_branch(self):
        compiled = compile_template(
            '<ul>${state.on && state.items.map('
            + 'item => html`<li>${item}</li>`)}</ul>')

        assert compiled.serialize() == [{
            'type': 'el',
            'tag': 'ul',
            'child': [{
                'type': 'log',
                'data': '/state/on',
                'child': [{
                    'type': 'map',
                    'data': '/state/items',
                    'child': [{
                        'type': 'el',
                        'tag': 'li',
                        'child': [{'type': 'text', 'data': '[item]'}]}]}]}]}]

    def test_map_as_conditional_branch(self):
        compiled = compile_template(
            '<ul>${state.on ? state.items.map('
            + 'item => html`<li>${item}</li>`) : html`<li>none</li>`}</ul>')

        assert compiled.serialize() == [{
            'type': 'el',
            'tag': 'ul',
            'child': [{
                'type': 'cond',
                'data': '/state/on',
                'child': [
                    {
                        'type': 'map',
                        'data': '/state/items',
                        'child': [{
                            'type': 'el',
                            'tag': 'li',
                            'child': [{'type': 'text', 'data': '[item]'}]}]},
                    {
                        'type': 'el',
                        'tag': 'li',
                        'child': [{'type': 'text', 'value': 'none'}]}]}]}]

    def test_nested_maps(self):
        """Bindings within nested maps are relative to whichever loop
        their alias belongs to.
        """
        compiled = compile_template('''
            <div>
              ${core.companies.map(
                (company) => html`
                  <section ${company.active && "data-active"}>
                    ${company.departments.map(
                      (dept) => html`
                        <article
                          ${company.active && dept.active && "data-active"}>
                          Dept: ${company.id}-${dept.id}
                        </article>
                      `
                    )}
                  </section>
                `
              )}
            </div>
            ''')

        assert compiled.errors == ()
        assert compiled.serialize() == [{
            'type': 'el',
            'tag': 'div',
            'child': [{
                'type': 'map',
                'data': '/core/companies',
                'child': [{
                    'type': 'el',
                    'tag': 'section',
                    'child': [{
                        'type': 'map',
                        'data': '[item]/departments',
                        'child': [{
                            'type': 'el',
                            'tag': 'article',
                            'child': [{
                                'type': 'text',
                                'data': ['../[item]/id', '[item]/id'],
                                'expr': 'Dept: ${[0]}-${[1]}'}],
                            'boolean': {
                                'data-active': {
                                    'data': [
                                        '../[item]/active',
                                        '[item]/active'],
                                    'expr': '${[0]} && ${[1]}'}}}]}],
                    'boolean': {
                        'data-active': {'data': '[item]/active'}}}]}]}]

    def test_conditional_with_else_if(self):
        compiled = compile_template(
            '<p>${state.a ? html`<i>a</i>` : state.b ? html`<b>b</b>` '
            + ': "none"}</p>')

        assert compiled.serialize() == [{
            'type': 'el',
            'tag': 'p',
            'child': [{
                'type': 'cond',
                'data': '/state/a',
                'child': [
                    {
                        'type': 'el',
                        'tag': 'i',
                        'child': [{'type': 'text', 'value': 'a'}]},
                    {
                        'type': 'cond',
                        'data': '/state/b',
                        'child': [
                            {
                                'type': 'el',
                                'tag': 'b',
                                'child': [{'type': 'text', 'value': 'b'}]},
                            {'type': 'text', 'value': 'none'}]}]}]}]

    def test_events(self):
        compiled = compile_template(
            '<input value=${state.name} '
            + 'oninput=${(e) => update({ name: e.target.value })}>')

        assert compiled.serialize() == [{
            'type': 'el',
            'tag': 'input',
            'string': {'value': {'data': '/state/name'}},
            'event': {
                'oninput': {
                    'expr': '(e) => update({ name: e.target.value })',
                    'upd': 'name'}}}]

    def test_meta(self):
        compiled = compile_template(
            '<meta-${core.tag} context=${{ title: context.title }}>'
            + '</meta-${core.tag}>')

        assert compiled.serialize() == [{
            'type': 'meta',
            'tag': {'data': '/core/tag', 'expr': 'meta-${[0]}'},
            'object': {
                'context': {'title': {'data': '/context/title'}}}}]

    def test_recoverable_errors_are_collected(self):
        compiled = compile_template(
            '<p title="oops>${nope.x}</p>"></p><b>${other}</b>')

        assert compiled.nodes
        assert len(compiled.errors) >= 1
        assert any(
            isinstance(exc, UnknownRootError) and exc.root == 'other'
            for exc in compiled.errors)

    def test_strict(self):
        with pytest.raises(ExceptionGroup) as exc_info:
            compile_template(
                '<p>${nope.x}</p>', CompileConfig(strict=True))

        exc, = exc_info.value.exceptions
        assert isinstance(exc, UnknownRootError)

    def test_strict_without_errors(self):
        compiled = compile_template(
            '<p>${context.x}</p>', CompileConfig(strict=True))

        assert compiled.errors == ()

    def test_max_errors(self):
        template = '<p>' + ''.join(f'${{bad{i}}}' for i in range(5)) + '</p>'

        # All of the text is a single binding, so that's only one error
        assert len(compile_template(template).errors) == 1

        template = ''.join(f'<p>${{bad{i}}}</p>' for i in range(5))
        with pytest.raises(ExceptionGroup):
            compile_template(template, CompileConfig(max_errors=3))

    def test_structural_errors_propagate(self):
        with pytest.raises(StructuralError):
            compile_template('<div><span></div>')

        with pytest.raises(StructuralError):
            compile_template('${list.map(x => html`<li></li>`}')

    def test_serialize_json(self):
        compiled = compile_template('<p>${context.x}</p>')

        assert serialize_json(compiled.nodes) == (
            '[{"type": "el", "tag": "p", "child": '
            + '[{"type": "text", "data": "/context/x"}]}]')

    @pytest.mark.benchmark
    def test_large_template(self):
        row = (
            '<tr class="row ${state.kind}">'
            + '${context.rows.map((row, i) => html`'
            + '<td onclick=${() => update({ selected: i })}>${row.name}</td>'
            + '${row.ok ? html`<td>ok</td>` : html`<td>${row.error}</td>`}'
            + '`)}</tr>')
        template = '<table>' + row * 2000 + '</table>'

        compiled = compile_template(template)

        table, = compiled.nodes
        assert len(table.children) == 2000
        assert compiled.errors == ()
