from __future__ import annotations

import json

from hyperbind.expressions import MapSignature
from hyperbind.nodes import ArrayList
from hyperbind.nodes import BooleanAttribute
from hyperbind.nodes import Condition
from hyperbind.nodes import DynamicString
from hyperbind.nodes import Element
from hyperbind.nodes import EventAttribute
from hyperbind.nodes import Logical
from hyperbind.nodes import Map
from hyperbind.nodes import Meta
from hyperbind.nodes import ObjectEntries
from hyperbind.nodes import StaticString
from hyperbind.nodes import Text
from hyperbind.paths import Absolute
from hyperbind.paths import BindingExpression
from hyperbind.paths import IndexRelative
from hyperbind.paths import ItemRelative
from hyperbind.serialization import serialize_binding
from hyperbind.serialization import serialize_json
from hyperbind.serialization import serialize_nodes


class TestPathRendering:

    def test_absolute(self):
        assert Absolute('context', ('user', 'name')).render() == (
            '/context/user/name')
        assert Absolute('state').render() == '/state'

    def test_item_relative(self):
        assert ItemRelative(0).render() == '[item]'
        assert ItemRelative(0, ('title',)).render() == '[item]/title'
        assert ItemRelative(1, ('id',)).render() == '../[item]/id'
        assert ItemRelative(2, ('id',)).render() == '../../[item]/id'

    def test_index_relative(self):
        assert IndexRelative(0).render() == '[index]'
        assert IndexRelative(1).render() == '../[index]'


class TestSerializeBinding:

    def test_bare_reference(self):
        binding = BindingExpression('${[0]}', (Absolute('core', ('a',)),))

        assert serialize_binding(binding) == {'data': '/core/a'}

    def test_single_reference_with_text(self):
        binding = BindingExpression('Hi ${[0]}!', (ItemRelative(0),))

        assert serialize_binding(binding) == {
            'data': '[item]', 'expr': 'Hi ${[0]}!'}

    def test_multiple_references(self):
        binding = BindingExpression(
            '${[0]} && ${[1]}',
            (ItemRelative(1, ('active',)), ItemRelative(0, ('active',))))

        assert serialize_binding(binding) == {
            'data': ['../[item]/active', '[item]/active'],
            'expr': '${[0]} && ${[1]}'}

    def test_no_references(self):
        binding = BindingExpression('() => update({ x: 1 })')

        assert serialize_binding(binding) == {
            'expr': '() => update({ x: 1 })'}

    def test_unresolved(self):
        binding = BindingExpression('${foo.bar}', unresolved=True)

        assert serialize_binding(binding) == {'value': '${foo.bar}'}


class TestSerializeNodes:

    def test_element_without_children_or_attributes(self):
        assert serialize_nodes((
            Element(tag='div', raw_attributes='', attributes={}),)) == [
            {'type': 'el', 'tag': 'div'}]

    def test_text(self):
        assert serialize_nodes((
            Text('hello'),
            Text(BindingExpression('${[0]}', (Absolute('core', ('x',)),))),
        )) == [
            {'type': 'text', 'value': 'hello'},
            {'type': 'text', 'data': '/core/x'}]

    def test_control_flow(self):
        guard = BindingExpression('${[0]}', (Absolute('state', ('on',)),))
        nodes = (
            Condition(
                guard=guard,
                true_branch=Text('yes'),
                false_branch=Text('')),
            Logical(guard=guard, child=Text('on')),
            Map(
                source=guard,
                signature=MapSignature(
                    source='state.on', params_text='x', item_alias='x'),
                children=(Text(BindingExpression(
                    '${[0]}', (ItemRelative(0),))),)))

        assert serialize_nodes(nodes) == [
            {
                'type': 'cond',
                'data': '/state/on',
                'child': [
                    {'type': 'text', 'value': 'yes'},
                    {'type': 'text', 'value': ''}]},
            {
                'type': 'log',
                'data': '/state/on',
                'child': [{'type': 'text', 'value': 'on'}]},
            {
                'type': 'map',
                'data': '/state/on',
                'child': [{'type': 'text', 'data': '[item]'}]}]

    def test_attribute_buckets(self):
        element = Element(
            tag='input',
            raw_attributes='',
            attributes={
                'id': StaticString('name'),
                'title': DynamicString(BindingExpression(
                    'Hi ${[0]}', (Absolute('context', ('name',)),))),
                'required': BooleanAttribute(True),
                'hidden': BooleanAttribute(
                    BindingExpression(
                        '${[0]}', (Absolute('state', ('shown',)),)),
                    negated=True),
                'oninput': EventAttribute(
                    handler=BindingExpression(
                        '(e) => update({ a: e, b: 1 })'),
                    update_keys=('a', 'b')),
                'onclick': EventAttribute(
                    handler=BindingExpression('() => update({ a: 1 })'),
                    update_keys=('a',)),
                'class': ArrayList((
                    StaticString('x'),
                    DynamicString(BindingExpression(
                        '${[0]}', (Absolute('core', ('c',)),))))),
                'style': ObjectEntries({
                    'color': StaticString('red'),
                    'width': DynamicString(BindingExpression(
                        '${[0]}px', (Absolute('state', ('w',)),)))}),
            })

        serialized, = serialize_nodes((element,))
        assert serialized == {
            'type': 'el',
            'tag': 'input',
            'string': {
                'id': 'name',
                'title': {'data': '/context/name', 'expr': 'Hi ${[0]}'}},
            'boolean': {
                'required': True,
                'hidden': {'data': '/state/shown', 'negated': True}},
            'event': {
                'oninput': {
                    'expr': '(e) => update({ a: e, b: 1 })',
                    'upd': ['a', 'b']},
                'onclick': {'expr': '() => update({ a: 1 })', 'upd': 'a'}},
            'array': {'class': ['x', {'data': '/core/c'}]},
            'object': {
                'style': {
                    'color': 'red',
                    'width': {'data': '/state/w', 'expr': '${[0]}px'}}}}

    def test_meta(self):
        meta = Meta(
            tag_expr=BindingExpression(
                'meta-${[0]}', (Absolute('core', ('tag',)),)),
            raw_attributes='',
            attributes={},
            children=(Text('x'),))

        assert serialize_nodes((meta,)) == [{
            'type': 'meta',
            'tag': {'data': '/core/tag', 'expr': 'meta-${[0]}'},
            'child': [{'type': 'text', 'value': 'x'}]}]

    def test_json(self):
        nodes = (Element(
            tag='p',
            raw_attributes='',
            attributes={},
            children=(Text('héllo'),)),)

        assert json.loads(serialize_json(nodes)) == serialize_nodes(nodes)
        assert 'héllo' in serialize_json(nodes, indent=2)
