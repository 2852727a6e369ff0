# -----------------------------------------------------------------------------
# Copyright 2025 by kilnheaders Authors, see AUTHORS for more details.
#
# Distributed under the terms of the MIT/X11 license.
#
# The full license is in the file LICENCE, distributed with this software.
# -----------------------------------------------------------------------------
"""Test parser functionalities."""

import io
import os

import pytest

from kilnheaders import c_model as cm
from kilnheaders.c_parser import CParser, parse_source
from kilnheaders.errors import DeclarationSyntaxError, LexError
from kilnheaders.registry import TAG, TYPEDEF

SOURCES = os.path.join(os.path.dirname(__file__), 'sources')

INT = cm.BuiltinType('int')
FLOAT = cm.BuiltinType('float')


def parse_clean(text):
    """Parse text and check that no error occurred."""
    parser = parse_source(text, 'test.c')
    assert parser.errors == []
    return parser


def field_names(decl):
    return [field.name for field in decl.members]


class TestComposites(object):

    def test_simple_struct(self):
        parser = parse_clean('struct Point { int x; int y; };')
        point = parser.registry.resolve('Point', TAG)
        assert point.kind == 'struct'
        assert field_names(point) == ['x', 'y']
        assert point.member('y').type == INT
        assert parser.declarations == [point]

    def test_typedef_with_other_alias(self):
        parser = parse_clean('typedef struct Car {\n'
                             '    int wheels;\n'
                             '    float engine_power;\n'
                             '} Vehicle;')
        car = parser.registry.resolve('Car', TAG)
        vehicle = parser.registry.resolve('Vehicle', TYPEDEF)
        assert field_names(car) == ['wheels', 'engine_power']
        assert vehicle.underlying == cm.TypeRef('struct Car')
        assert parser.registry.get('Car') is None
        assert parser.registry.get('Vehicle', TAG) is None

    def test_untagged_typedef(self):
        parser = parse_clean('typedef struct { float real; float imag; } '
                             'Complex;')
        complex_ = parser.registry.resolve('Complex', TYPEDEF)
        assert complex_.underlying.is_anonymous
        assert field_names(complex_.underlying) == ['real', 'imag']

    def test_several_typedef_declarators(self):
        parser = parse_clean('typedef struct { int a; } A, *PA;')
        pa = parser.registry.resolve('PA', TYPEDEF)
        assert pa.underlying == cm.PointerType(cm.TypeRef('A'))
        assert pa.c_definition() == 'typedef A *PA;'

    def test_nested_definition(self):
        parser = parse_clean('struct Line {\n'
                             '    struct Vec { int x; int y; } start, end;\n'
                             '};')
        vec = parser.registry.resolve('Vec', TAG)
        line = parser.registry.resolve('Line', TAG)
        assert field_names(line) == ['start', 'end']
        assert line.member('end').type == cm.TypeRef('struct Vec')
        assert field_names(vec) == ['x', 'y']
        assert parser.declarations == [vec, line]

    def test_anonymous_members_are_hoisted(self):
        parser = parse_clean('struct Container {\n'
                             '    int id;\n'
                             '    union { int i; float f; };\n'
                             '    struct { int left; int right; } children;\n'
                             '};')
        container = parser.registry.resolve('Container', TAG)
        assert container.member_names() == ['id', 'i', 'f', 'children']
        assert container.members[1].is_anonymous_member
        assert container.member('f').type == FLOAT

    def test_self_reference(self):
        parser = parse_clean('struct List { int data; struct List *next; };')
        node = parser.registry.resolve('List', TAG)
        assert node.member('next').type == \
            cm.PointerType(cm.TypeRef('struct List'))

    def test_bitfields(self):
        parser = parse_clean('struct Flags {\n'
                             '    unsigned int flag1 : 1;\n'
                             '    unsigned int flag2 : 1, : 0;\n'
                             '    int wide : 2 * 3;\n'
                             '};')
        flags = parser.registry.resolve('Flags', TAG)
        first = flags.members[0]
        assert first.bitfield_width == 1
        assert first.type == cm.BuiltinType('unsigned int')
        assert flags.members[2].name is None
        assert flags.members[2].bitfield_width == 0
        assert flags.member('wide').bitfield_width == 6

    def test_flexible_array_last(self):
        parser = parse_clean('struct Buffer { int size; char data[]; };')
        buffer = parser.registry.resolve('Buffer', TAG)
        assert buffer.member('data').is_flexible_array

    def test_flexible_array_not_last(self):
        parser = parse_source('struct Bad {\n'
                              '    char data[];\n'
                              '    int size;\n'
                              '};')
        assert len(parser.errors) == 1
        error = parser.errors[0]
        assert isinstance(error, DeclarationSyntaxError)
        assert 'flexible array' in error.message
        assert (error.line, error.column) == (2, 10)

    def test_duplicate_member(self):
        parser = parse_source('struct D { int a; union { int a; }; };')
        assert [e.message for e in parser.errors] == ["duplicate member 'a'"]

    def test_array_sizes(self):
        parser = parse_clean('enum { N = 3 };\n'
                             'struct Matrix {\n'
                             '    float elements[4][4];\n'
                             '    char name[N + 1];\n'
                             '    int raw[0x10];\n'
                             '};')
        matrix = parser.registry.resolve('Matrix', TAG)
        assert matrix.member('elements').type == \
            cm.ArrayType(cm.ArrayType(FLOAT, 4), 4)
        assert matrix.member('name').type.size == 'N+1'
        assert matrix.member('raw').type.size == 16
        assert parser.constants == {'N': 3}

    def test_qualified_members(self):
        parser = parse_clean('struct SpecialMembers {\n'
                             '    volatile int counter;\n'
                             '    const char* message;\n'
                             '    char* const buffer;\n'
                             '};')
        special = parser.registry.resolve('SpecialMembers', TAG)
        assert special.member('counter').type.quals == ['volatile']
        assert [field.c_repr() for field in special.members] == [
            'volatile int counter;',
            'const char *message;',
            'char *const buffer;']

    def test_function_pointer_members(self):
        parser = parse_clean('struct Callbacks {\n'
                             '    void (*onStart)(void);\n'
                             '    int (*calculate)(int, int);\n'
                             '    void (*cleanup)(void*);\n'
                             '};')
        callbacks = parser.registry.resolve('Callbacks', TAG)
        assert [field.c_repr() for field in callbacks.members] == [
            'void (*onStart)(void);',
            'int (*calculate)(int, int);',
            'void (*cleanup)(void *);']

    def test_attributes_are_kept(self):
        parser = parse_clean('struct __attribute__((packed)) Packed {\n'
                             '    char c __attribute__((aligned(2)));\n'
                             '};')
        packed = parser.registry.resolve('Packed', TAG)
        assert packed.attributes == ['__attribute__((packed))']
        assert packed.member('c').attributes == \
            ['__attribute__((aligned(2)))']

    def test_union(self):
        parser = parse_clean('union Data { int i; float f; char *s; };\n'
                             'typedef union { int i; } Data;')
        assert parser.registry.resolve('Data', TAG).kind == 'union'
        assert parser.registry.resolve('Data', TYPEDEF).underlying.kind == \
            'union'


class TestForwardDeclarations(object):

    def test_placeholder(self):
        parser = parse_clean('struct ForwardDeclared;')
        decl = parser.registry.resolve('ForwardDeclared', TAG)
        assert not decl.is_complete

    def test_completed_later(self):
        parser = parse_clean('struct Later;\n'
                             'void use(struct Later *p) { }\n'
                             'struct Later { int v; };')
        later = parser.registry.resolve('Later', TAG)
        assert later.is_complete
        forward, types = parser.registry.declarations_for(parser.signatures)
        assert forward == []
        assert types == [later]

    def test_forward_after_definition(self):
        parser = parse_clean('struct S { int a; };\nstruct S;')
        assert parser.registry.resolve('S', TAG).is_complete

    def test_redefinition(self):
        parser = parse_source('struct S { int a; };\nstruct S { int b; };')
        assert [e.message for e in parser.errors] == \
            ["redefinition of 'struct S'"]
        assert parser.errors[0].construct == 'struct'

    def test_wrong_kind_of_tag(self):
        parser = parse_source('struct S { int a; };\nunion S { int b; };')
        assert parser.errors[0].message == \
            "'S' defined as wrong kind of tag"


class TestEnums(object):

    def test_values(self):
        parser = parse_clean('enum Direction {\n'
                             '    NORTH = 0,\n'
                             '    EAST = 90,\n'
                             '    SOUTH = EAST * 2,\n'
                             '    WEST\n'
                             '};')
        direction = parser.registry.resolve('Direction', TAG)
        assert direction.values == [('NORTH', '0'), ('EAST', '90'),
                                    ('SOUTH', 'EAST*2'), ('WEST', None)]
        assert direction.resolved_values() == [('NORTH', 0), ('EAST', 90),
                                               ('SOUTH', 180), ('WEST', 181)]

    def test_trailing_comma_and_same_name(self):
        parser = parse_clean('typedef enum BlockType {\n'
                             '\tBlockTypeCreate,\n'
                             '\tBlockTypeUpdate,\n'
                             '\tBlockTypeDelete,\n'
                             '} BlockType;')
        tag = parser.registry.resolve('BlockType', TAG)
        alias = parser.registry.resolve('BlockType', TYPEDEF)
        assert [name for name, _ in tag.values] == [
            'BlockTypeCreate', 'BlockTypeUpdate', 'BlockTypeDelete']
        assert alias.underlying == cm.TypeRef('enum BlockType')

    def test_anonymous_enum_member(self):
        parser = parse_clean('union WithEnum {\n'
                             '    enum { STATE_IDLE, STATE_BUSY } state;\n'
                             '    int rawState;\n'
                             '};')
        state = parser.registry.resolve('WithEnum', TAG).member('state')
        assert isinstance(state.type, cm.EnumDecl)
        assert parser.constants == {'STATE_IDLE': 0, 'STATE_BUSY': 1}

    def test_missing_comma(self):
        parser = parse_source('enum E { A B };\nenum F { C };')
        assert len(parser.errors) == 1
        assert parser.errors[0].construct == 'enum'
        assert parser.registry.get('F', TAG) is not None


class TestTypedefs(object):

    def test_function_pointer(self):
        parser = parse_clean('typedef int (*CompareFn)(const void*, '
                             'const void*);')
        compare = parser.registry.resolve('CompareFn', TYPEDEF)
        assert compare.c_definition() == \
            'typedef int (*CompareFn)(const void *, const void *);'

    def test_factory(self):
        parser = parse_clean('typedef struct Node* (*NodeFactory)(int value);')
        factory = parser.registry.resolve('NodeFactory', TYPEDEF)
        assert factory.c_definition() == \
            'typedef struct Node *(*NodeFactory)(int value);'

    def test_pointer_and_array(self):
        parser = parse_clean('typedef void* VoidPtr;\n'
                             'typedef int IntArray[10];')
        assert parser.registry.resolve('VoidPtr', TYPEDEF).underlying == \
            cm.PointerType(cm.BuiltinType('void'))
        assert parser.registry.resolve('IntArray', TYPEDEF).underlying == \
            cm.ArrayType(INT, 10)

    def test_alias_used_as_type(self):
        parser = parse_clean('typedef unsigned long Id;\n'
                             'Id next_id(Id (*gen)(void)) { return 0; }')
        sig = parser.signatures[0]
        assert sig.return_type == cm.TypeRef('Id')
        assert sig.c_prototype() == 'Id next_id(Id (*gen)(void));'

    def test_parenthesized_typedef_name_param(self):
        parser = parse_clean('typedef int T;\nvoid f(int (T)) { }')
        param_type = parser.signatures[0].parameters[0][1]
        assert isinstance(param_type, cm.FunctionType)

    def test_conflicting_redefinition(self):
        parser = parse_source('typedef int T;\ntypedef long T;')
        assert parser.errors[0].message == "conflicting types for 'T'"
        assert parser.errors[0].line == 2

    def test_identical_redefinition(self):
        parse_clean('typedef int T;\ntypedef int T;')

    def test_nested_typedef_is_rejected(self):
        parser = parse_source('typedef struct {\n'
                              '    typedef enum {\n'
                              '        INNER_ONE,\n'
                              '        INNER_TWO\n'
                              '    } InnerEnum;\n'
                              '    int value;\n'
                              '} OuterStruct;')
        assert len(parser.errors) == 1
        error = parser.errors[0]
        assert error.construct == 'typedef'
        assert (error.line, error.column) == (2, 5)
        outer = parser.registry.resolve('OuterStruct', TYPEDEF)
        assert outer.underlying.member_names() == ['value']
        assert parser.registry.get('InnerEnum') is None

    def test_standard_typedef_names(self):
        parser = parse_clean('size_t count(const uint8_t *data, '
                             'size_t len) { return len; }')
        sig = parser.signatures[0]
        assert sig.return_type == cm.BuiltinType('size_t')
        assert sig.c_prototype() == \
            'size_t count(const uint8_t *data, size_t len);'


class TestFunctions(object):

    def test_signature(self):
        parser = parse_clean('int add(struct Point a, struct Point b) {\n'
                             '    return a.x + b.x;\n'
                             '}')
        sig, = parser.signatures
        assert sig.name == 'add'
        assert sig.return_type == INT
        assert sig.parameters == [('a', cm.TypeRef('struct Point')),
                                  ('b', cm.TypeRef('struct Point'))]
        assert (sig.position.line, sig.position.column) == (1, 5)

    def test_prototypes_and_globals_are_not_recorded(self):
        parser = parse_clean('int add(int, int);\n'
                             'int counter = 0, other[3] = {1, 2, 3};\n'
                             'extern const char *name;\n'
                             '_Static_assert(sizeof(int) == 4, "int");')
        assert parser.declarations == []

    def test_body_is_skipped(self):
        parser = parse_clean('int f(void) {\n'
                             '    struct Local { int a; } l = {0};\n'
                             '    if (l.a) { return "}"[0]; }\n'
                             '    return 0;\n'
                             '}\n'
                             'int g(void) { return 1; }')
        assert [sig.name for sig in parser.signatures] == ['f', 'g']
        assert parser.registry.get('Local', TAG) is None

    def test_storage(self):
        parser = parse_clean('static inline int helper(void) { return 0; }\n'
                             '_Noreturn void die(void) { for (;;); }')
        helper, die = parser.signatures
        assert helper.storage == ['static', 'inline']
        assert not helper.is_external
        assert die.c_prototype() == '_Noreturn void die(void);'

    def test_variadic_and_pointer_return(self):
        parser = parse_clean('char *fmt(const char *f, ...) { return 0; }\n'
                             'int (*pick(int which))(int, int) { return 0; }')
        fmt, pick = parser.signatures
        assert fmt.variadic
        assert fmt.c_prototype() == 'char *fmt(const char *f, ...);'
        assert pick.c_prototype() == 'int (*pick(int which))(int, int);'

    def test_unspecified_parameters(self):
        parser = parse_clean('int legacy() { return 0; }')
        assert parser.signatures[0].parameters is None
        assert parser.signatures[0].c_prototype() == 'int legacy();'

    def test_includes(self):
        parser = parse_clean('#include <stdio.h>\n'
                             '#include "point.h" /* own header */\n'
                             '#  include <stdio.h>\n'
                             '#define TWICE(x) ((x) * 2)\n'
                             'int one(void) { return 1; }')
        assert parser.includes == ['#include <stdio.h>',
                                   '#include "point.h"']

    def test_defines(self):
        parser = parse_clean('#define N 16\n'
                             '#define MAX(a, b) \\\n'
                             '    ((a) > (b) ? (a) : (b))\n'
                             '#define EMPTY\n'
                             '#define GONE 1\n'
                             '#undef GONE\n'
                             '#define N /* size */ 32\n'
                             'struct Buf {\n'
                             '#define INNER 2\n'
                             '    char data[N];\n'
                             '};\n')
        assert [macro.c_definition() for macro in parser.defines] == [
            '#define MAX(a, b) ((a) > (b) ? (a) : (b))',
            '#define EMPTY',
            '#define N 32',
            '#define INNER 2',
        ]
        assert parser.defines[0].parameters == ['a', 'b']
        assert not parser.defines[1].is_function_like
        assert parser.registry.macro('N').body == '32'
        assert parser.registry.macro('GONE') is None
        buf = parser.registry.resolve('Buf', TAG)
        assert buf.members[0].c_repr() == 'char data[N];'


class TestErrorRecovery(object):

    def test_top_level_recovery(self):
        parser = parse_source('int 5x;\nstruct After { int a; };', 'bad.c')
        assert len(parser.errors) == 1
        error = parser.errors[0]
        assert error.message == "expected identifier or '(' before '5'"
        assert error.construct == 'declaration'
        assert str(error) == \
            "bad.c:1:5: expected identifier or '(' before '5'"
        assert parser.registry.get('After', TAG) is not None

    def test_member_recovery(self):
        parser = parse_source('struct Good1 { int a; };\n'
                              'struct Bad { int x int y; int z; };\n'
                              'struct Good2 { int b; };')
        assert len(parser.errors) == 1
        assert parser.errors[0].construct == 'struct'
        assert parser.errors[0].line == 2
        assert parser.registry.resolve('Bad', TAG).member_names() == ['z']
        assert parser.registry.get('Good2', TAG) is not None

    def test_broken_function(self):
        parser = parse_source('int broken( { return 0; }\n'
                              'int ok(void) { return 1; }')
        assert len(parser.errors) == 1
        assert parser.errors[0].construct == 'parameter'
        assert [sig.name for sig in parser.signatures] == ['ok']

    def test_stray_closing_brace(self):
        parser = parse_source('}\nint ok(void) { return 1; }')
        assert len(parser.errors) == 1
        assert [sig.name for sig in parser.signatures] == ['ok']

    def test_unexpected_end(self):
        parser = parse_source('struct Open { int a;')
        assert len(parser.errors) == 1
        assert 'end of input' in parser.errors[0].message

    def test_lex_error(self):
        parser = parse_source('struct A { int a; };\n/* unterminated', 'a.c')
        assert len(parser.errors) == 1
        assert isinstance(parser.errors[0], LexError)
        assert parser.errors[0].path == 'a.c'
        assert parser.registry.get('A', TAG) is not None


class TestCorpus(object):
    """Parse a corpus of user defined type declarations."""

    def setup_method(self):
        path = os.path.join(SOURCES, 'udt_corpus.c')
        with io.open(path, encoding='utf-8') as f:
            self.parser = CParser(path=path)
            self.parser.parse(f.read())
        self.registry = self.parser.registry

    def test_errors(self):
        errors = [(e.line, e.construct, e.message)
                  for e in self.parser.errors]
        assert errors == [
            (29, 'struct', "redefinition of 'struct Point'"),
            (179, 'typedef', 'typedef is not allowed inside a struct body'),
        ]

    def test_namespaces(self):
        tags = set(name.split(' ', 1)[1] for name in self.registry
                   if ' ' in name)
        aliases = set(name for name in self.registry if ' ' not in name)
        assert {'Point', 'Rectangle', 'Line', 'Node', 'List', 'Flags',
                'Car', 'Color', 'Direction', 'Day', 'Data', 'Container',
                'BlockType', 'TcpPacket', 'Callbacks', 'ForwardDeclared',
                'Buffer', 'CommentTest', 'BitAccess', 'Empty', 'Matrix',
                'WithEnum', 'SpecialMembers'} <= tags
        assert aliases == {'Complex', 'Rectangle', 'Employee', 'Vehicle',
                           'Shape', 'Day', 'Data', 'BlockType', 'TcpPacket',
                           'CompareFn', 'OuterStruct', 'VoidPtr', 'IntArray',
                           'NodeFactory'}

    def test_members(self):
        assert self.registry['struct CommentTest'].member_names() == ['value']
        assert self.registry['struct Container'].member_names() == \
            ['id', 'i', 'f']
        assert self.registry['struct Empty'].members == []
        assert self.registry['struct Buffer'].member('data').is_flexible_array
        assert self.registry['union BitAccess'].member_names() == \
            ['fullValue', 'parts']

    def test_no_cycles(self):
        assert self.registry.find_cycles() == []

    def test_includes(self):
        assert self.parser.includes == ['#include <stdio.h>']
