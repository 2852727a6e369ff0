# -----------------------------------------------------------------------------
# Copyright 2025 by kilnheaders Authors, see AUTHORS for more details.
#
# Distributed under the terms of the MIT/X11 license.
#
# The full license is in the file LICENCE, distributed with this software.
# -----------------------------------------------------------------------------
"""Recursive descent parser recovering the declarations of a C source file.

Only the declaration grammar is understood. Function bodies and initializers
are skipped by balancing braces. Of the preprocessor directives, ``#include``
and ``#define`` are collected and the others are ignored.

Example
-------
    parser = CParser(path='point.c')
    parser.parse(open('point.c').read())
    for decl in parser.declarations:
        ...
    for error in parser.errors:
        print(error.to_diagnostic())

"""
import contextlib
import logging
import re

from .c_expr import evaluate
from .c_model import (BUILTIN_SPECIFIERS, ENUM, STANDARD_TYPEDEFS, ArrayType,
                      BuiltinType, CompositeDecl, EnumDecl, Field,
                      FunctionSignature, FunctionType, MacroDefinition,
                      PointerType, TypedefDecl, TypeRef)
from .c_tokenizer import (ATTRIBUTE, DIRECTIVE, IDENTIFIER, KEYWORD, NUMBER,
                          PUNCTUATOR, SourcePosition, Token, Tokenizer,
                          strip_comments)
from .errors import DeclarationSyntaxError, LexError
from .registry import TAG, TYPEDEF, TypeRegistry

logger = logging.getLogger(__name__)


_EOF = 'eof'

STORAGE_SPECIFIERS = {
    'typedef': 'typedef',
    'extern': 'extern',
    'static': 'static',
    'auto': 'auto',
    'register': 'register',
    '_Thread_local': '_Thread_local',
    'inline': 'inline',
    '__inline': 'inline',
    '__inline__': 'inline',
    '_Noreturn': '_Noreturn',
}

TYPE_QUALIFIERS = {
    'const': 'const',
    '__const': 'const',
    '__const__': 'const',
    'volatile': 'volatile',
    '__volatile': 'volatile',
    '__volatile__': 'volatile',
    'restrict': 'restrict',
    '__restrict': 'restrict',
    '__restrict__': 'restrict',
    '_Atomic': '_Atomic',
}

_INCLUDE = re.compile(r'#\s*include\s*([<"][^>"]+[>"])')
_DEFINE = re.compile(r"#\s*define\s+([A-Za-z_]\w*)(?:\(([^)]*)\))?(.*)\Z",
                     re.DOTALL)
_UNDEF = re.compile(r"#\s*undef\s+([A-Za-z_]\w*)")


class _Specifiers(object):
    """Result of parsing declaration specifiers.

    """

    __slots__ = ('base_type', 'storage', 'attributes', 'defined', 'tag_ref')

    def __init__(self, base_type, storage, attributes, defined, tag_ref):
        self.base_type = base_type
        self.storage = storage
        self.attributes = attributes
        self.defined = defined
        self.tag_ref = tag_ref


def _join_tokens(tokens):
    """Rebuild compact source text from tokens, spacing only between words.

    """
    text = ''
    prev = None
    for token in tokens:
        if (prev is not None and prev.kind in (IDENTIFIER, KEYWORD, NUMBER) and
                token.kind in (IDENTIFIER, KEYWORD, NUMBER)):
            text += ' '
        text += token.lexeme
        prev = token
    return text


class CParser(object):
    """Parser for the declarations of one C source file.

    Named composites, enums and typedefs are registered into the registry as
    soon as they are recognized. A malformed declaration is recorded in
    errors and the parser resumes after the next ';' or closing '}' at the
    nesting depth the error occurred at.

    Parameters
    ----------
    registry : TypeRegistry, optional
        Registry to populate. A fresh one is created if omitted.
    path : str, optional
        Name of the parsed file, used in diagnostics.

    Attributes
    ----------
    declarations : list
        Top-level CompositeDecl, EnumDecl, TypedefDecl and FunctionSignature
        objects in source order. A nested tagged composite comes before the
        composite it is nested in.
    includes : list[str]
        The ``#include`` directives of the file, normalized.
    defines : list[MacroDefinition]
        The macros defined by the file and still defined at its end, in
        order of definition.
    errors : list[DeclarationError]
        The problems found, in source order.
    constants : dict[str, int]
        Values of the enumeration constants seen so far.

    """

    def __init__(self, registry=None, path=None):
        self.registry = registry if registry is not None else TypeRegistry(path)
        self.path = path
        self.declarations = []
        self.includes = []
        self.defines = []
        self.errors = []
        self.constants = {}
        self._tokens = []
        self._pos = 0
        self._constructs = []

    @property
    def signatures(self):
        """The function signatures found, in source order.

        """
        return [decl for decl in self.declarations
                if isinstance(decl, FunctionSignature)]

    def parse(self, text):
        """Parse a complete source text.

        A LexError stops tokenizing, the tokens recognized before it are
        still parsed.

        Returns
        -------
        list
            The declarations found (see the declarations attribute).

        """
        tokens = []
        try:
            for token in Tokenizer(text, self.path):
                tokens.append(token)
        except LexError as exc:
            self._report(exc)
        return self.parse_tokens(tokens)

    def parse_tokens(self, tokens):
        """Parse a token sequence produced by the Tokenizer.

        """
        self._tokens = list(tokens)
        self._pos = 0
        while not self._at_eof():
            token = self._peek()
            if token.kind == DIRECTIVE:
                self._directive(self._next())
                continue
            if token.is_punct(';'):
                self._next()
                continue
            start = self._pos
            try:
                self._external_declaration()
            except DeclarationSyntaxError as exc:
                self._report(exc)
                self._recover(start)
        for macro in self.defines:
            self.registry.define(macro, self.path)
        return self.declarations

    # =========================================================================
    # --- Token stream helpers
    # =========================================================================

    def _eof_token(self):
        if self._tokens:
            last = self._tokens[-1]
            position = SourcePosition(last.line,
                                      last.column + len(last.lexeme))
        else:
            position = SourcePosition(1, 1)
        return Token(_EOF, '', position)

    def _at_eof(self):
        return self._pos >= len(self._tokens)

    def _peek(self, offset=0):
        index = self._pos + offset
        if index < len(self._tokens):
            return self._tokens[index]
        return self._eof_token()

    def _next(self):
        token = self._peek()
        if token.kind == _EOF:
            raise self._error('unexpected end of input', token)
        self._pos += 1
        return token

    def _accept(self, lexeme):
        if self._peek().is_punct(lexeme):
            return self._next()
        return None

    def _expect(self, lexeme):
        token = self._peek()
        if not token.is_punct(lexeme):
            raise self._error("expected '{}' {}".format(lexeme,
                                                        self._before(token)),
                              token)
        return self._next()

    @staticmethod
    def _before(token):
        if token.kind == _EOF:
            return 'at end of input'
        return "before '{}'".format(token.lexeme)

    def _error(self, message, token, construct=None):
        if construct is None:
            construct = (self._constructs[-1] if self._constructs
                         else 'declaration')
        return DeclarationSyntaxError(message, token.line, token.column,
                                      self.path, construct)

    def _report(self, error):
        if error.path is None:
            error.path = self.path
        logger.debug('{}'.format(error))
        self.errors.append(error)

    @contextlib.contextmanager
    def _within(self, construct):
        """Context naming the construct being recognized, for errors.

        """
        self._constructs.append(construct)
        try:
            yield
        finally:
            self._constructs.pop()

    # =========================================================================
    # --- Error recovery
    # =========================================================================

    def _depth_since(self, start):
        depth = 0
        for token in self._tokens[start:self._pos]:
            if token.is_punct('{'):
                depth += 1
            elif token.is_punct('}'):
                depth -= 1
        return max(depth, 0)

    def _recover(self, start):
        """Skip to the end of the broken top-level declaration.

        Stops after the next ';' at the depth the error occurred at or after
        the '}' closing that depth.

        """
        depth = self._depth_since(start)
        if self._pos == start and not self._at_eof():
            token = self._next()
            if token.is_punct(';', '}'):
                return
            if token.is_punct('{'):
                depth += 1
        while not self._at_eof():
            token = self._peek()
            if token.kind == DIRECTIVE and depth == 0:
                return
            self._pos += 1
            if token.is_punct('{'):
                depth += 1
            elif token.is_punct('}'):
                depth -= 1
                if depth <= 0:
                    return
            elif token.is_punct(';') and depth == 0:
                return

    def _recover_member(self):
        """Skip to the end of a broken member declaration, leaving the '}'
        closing the enclosing body in the stream.

        """
        depth = 0
        while not self._at_eof():
            token = self._peek()
            if token.is_punct('}'):
                if depth == 0:
                    return
                depth -= 1
            elif token.is_punct('{'):
                depth += 1
            elif token.is_punct(';') and depth == 0:
                self._pos += 1
                return
            self._pos += 1

    # =========================================================================
    # --- Top level
    # =========================================================================

    def _directive(self, token):
        text = re.sub(r'[ \t]*\\\n\s*', ' ', strip_comments(token.lexeme))
        text = text.strip()
        match = _INCLUDE.match(text)
        if match is not None:
            include = '#include ' + match.group(1)
            if include not in self.includes:
                self.includes.append(include)
            return
        match = _DEFINE.match(text)
        if match is not None:
            name, params, body = match.groups()
            if params is not None:
                params = [p.strip() for p in params.split(',') if p.strip()]
            self._define(MacroDefinition(name, params, body.strip(),
                                         token.position))
            return
        match = _UNDEF.match(text)
        if match is not None:
            self.defines = [m for m in self.defines
                            if m.name != match.group(1)]
            return
        logger.debug('ignoring directive {!r}'.format(token.lexeme))

    def _define(self, macro):
        """Record a macro, a later definition replaces an earlier one.

        """
        self.defines = [m for m in self.defines if m.name != macro.name]
        self.defines.append(macro)
        logger.debug('define {}'.format(macro.name))

    def _external_declaration(self):
        first_token = self._peek()
        if first_token.is_keyword('_Static_assert'):
            self._skip_until(';')
            return

        specs = self._declaration_specifiers()
        is_typedef = 'typedef' in specs.storage
        if self._accept(';'):
            self._tag_only_declaration(specs, first_token)
            return

        base_type = specs.base_type
        first = True
        with self._within('typedef' if is_typedef else 'declaration'):
            while True:
                name, ctype, position = self._declarator(base_type)
                self._attributes()
                if is_typedef:
                    self._typedef(name, ctype, position, first_token)
                    if (first and ctype is base_type and
                            specs.defined is not None and
                            specs.defined.tag is None):
                        # further aliases refer to the anonymous type by
                        # its first name
                        base_type = TypeRef(name)
                elif (isinstance(ctype, FunctionType) and
                        self._peek().is_punct('{')):
                    if not first:
                        raise self._error("expected ';' before '{'",
                                          self._peek())
                    self._function_definition(name, ctype, specs, position)
                    return
                elif self._accept('='):
                    self._skip_initializer()
                first = False
                if self._accept(','):
                    continue
                self._expect(';')
                return

    def _tag_only_declaration(self, specs, first_token):
        """Handle declarations without declarator: 'struct X {...};' or
        'struct X;'.

        """
        if specs.defined is not None:
            return
        ref = specs.tag_ref
        if ref is None:
            logger.debug('declaration at {} does not declare anything'
                         .format(first_token.position))
            return
        if ref.keyword == ENUM:
            return
        if self.registry.get(ref.name, TAG) is None:
            decl = CompositeDecl(ref.keyword, ref.name,
                                 position=first_token.position)
            self._register_tag(decl, first_token)
            logger.debug('forward declaration of {}'.format(ref.type_name))

    def _typedef(self, name, ctype, position, first_token):
        if name is None:
            raise self._error('typedef without a name', first_token,
                              'typedef')
        decl = TypedefDecl(name, ctype, position=position)
        existing = self.registry.get(name, TYPEDEF)
        if existing is not None and existing.underlying != ctype:
            raise DeclarationSyntaxError(
                "conflicting types for '{}'".format(name),
                position.line, position.column, self.path, 'typedef')
        self.registry.register(name, TYPEDEF, decl, self.path)
        self.declarations.append(decl)
        logger.debug('typedef {}: {}'.format(name, ctype))

    def _function_definition(self, name, ctype, specs, position):
        with self._within('function'):
            signature = FunctionSignature(name, ctype.return_type,
                                          ctype.params, ctype.variadic,
                                          specs.storage, position)
            self._skip_braced()
        self.declarations.append(signature)
        logger.debug('function {}'.format(signature.c_prototype()))

    # =========================================================================
    # --- Skipping
    # =========================================================================

    def _skip_until(self, *lexemes):
        """Consume tokens up to and including one of lexemes at depth 0.

        """
        depth = 0
        while True:
            token = self._next()
            if token.kind != PUNCTUATOR:
                continue
            if token.lexeme in ('(', '[', '{'):
                depth += 1
            elif token.lexeme in (')', ']', '}'):
                depth -= 1
            elif depth == 0 and token.lexeme in lexemes:
                return token

    def _skip_braced(self):
        self._expect('{')
        depth = 1
        while depth:
            token = self._peek()
            if token.kind == _EOF:
                raise self._error("expected '}' at end of input", token)
            self._pos += 1
            if token.is_punct('{'):
                depth += 1
            elif token.is_punct('}'):
                depth -= 1

    def _expression_tokens(self, *stops):
        """Collect the tokens of an expression, up to one of stops at depth 0
        (not consumed).

        """
        tokens = []
        depth = 0
        while True:
            token = self._peek()
            if token.kind == _EOF:
                raise self._error('unexpected end of input', token)
            if depth == 0 and token.is_punct(*stops):
                return tokens
            if token.is_punct('(', '[', '{'):
                depth += 1
            elif token.is_punct(')', ']', '}'):
                if depth == 0:
                    raise self._error('unbalanced {!r}'.format(token.lexeme),
                                      token)
                depth -= 1
            tokens.append(self._next())

    def _skip_initializer(self):
        self._expression_tokens(',', ';')

    def _constant(self, tokens):
        """Value of a literal constant expression. Expressions naming
        constants are kept as written, so are the ones that cannot be
        evaluated.

        """
        text = _join_tokens(tokens)
        if any(token.kind == IDENTIFIER for token in tokens):
            return text
        value = evaluate(text)
        return text if value is None else value

    # =========================================================================
    # --- Declaration specifiers
    # =========================================================================

    def _attributes(self):
        attributes = []
        while self._peek().kind == ATTRIBUTE:
            attributes.append(self._next().lexeme)
        return attributes

    def _is_type_name(self, name):
        return self.registry.is_typedef_name(name) or name in STANDARD_TYPEDEFS

    def _declaration_specifiers(self):
        storage = []
        quals = []
        builtin = []
        attributes = []
        base_type = None
        defined = None
        tag_ref = None
        while True:
            token = self._peek()
            if token.kind == ATTRIBUTE:
                attributes.append(self._next().lexeme)
                continue
            if token.kind == KEYWORD:
                lexeme = token.lexeme
                if lexeme in STORAGE_SPECIFIERS:
                    storage.append(STORAGE_SPECIFIERS[lexeme])
                elif lexeme in TYPE_QUALIFIERS:
                    quals.append(TYPE_QUALIFIERS[lexeme])
                elif lexeme == '__extension__':
                    pass
                elif lexeme in BUILTIN_SPECIFIERS:
                    if base_type is not None:
                        raise self._error('two or more data types in '
                                          'declaration specifiers', token)
                    builtin.append(lexeme)
                elif lexeme in ('struct', 'union', 'enum'):
                    if base_type is not None or builtin:
                        raise self._error('two or more data types in '
                                          'declaration specifiers', token)
                    if lexeme == 'enum':
                        base_type, defined = self._enum_specifier()
                    else:
                        base_type, defined = self._composite_specifier()
                    if defined is None:
                        tag_ref = base_type
                    continue
                else:
                    break
                self._next()
                continue
            if (token.kind == IDENTIFIER and base_type is None and
                    not builtin):
                self._next()
                if (token.lexeme in STANDARD_TYPEDEFS and
                        not self.registry.is_typedef_name(token.lexeme)):
                    base_type = BuiltinType(token.lexeme)
                else:
                    base_type = TypeRef(token.lexeme)
                continue
            break

        if builtin:
            base_type = BuiltinType(' '.join(builtin))
        if base_type is None:
            token = self._peek()
            raise self._error('expected a type specifier {}'
                              .format(self._before(token)), token)
        if quals:
            if defined is not None and base_type is defined:
                # keep the identity of an inline definition
                defined.quals = defined.quals + quals
            else:
                base_type = base_type.with_quals(quals)
        return _Specifiers(base_type, storage, attributes, defined, tag_ref)

    def _type_qualifiers(self):
        quals = []
        while True:
            token = self._peek()
            if token.kind == KEYWORD and token.lexeme in TYPE_QUALIFIERS:
                quals.append(TYPE_QUALIFIERS[self._next().lexeme])
            elif token.kind == ATTRIBUTE:
                self._next()
            else:
                return quals

    def _register_tag(self, decl, token):
        existing = self.registry.get(decl.tag, TAG)
        if existing is not None:
            if existing.kind != decl.kind:
                raise self._error("'{}' defined as wrong kind of tag"
                                  .format(decl.tag), token, decl.kind)
            if existing.is_complete and decl.is_complete:
                raise self._error("redefinition of '{}'"
                                  .format(decl.type_name), token, decl.kind)
        self.registry.register(decl.tag, TAG, decl, self.path)
        self.declarations.append(decl)

    # =========================================================================
    # --- Structs and unions
    # =========================================================================

    def _composite_specifier(self):
        """Parse 'struct|union [tag] [{...}]'.

        Returns
        -------
        ctype : CType
            Type to use in declarators: a TypeRef for a tagged composite, the
            CompositeDecl itself for an anonymous one.
        defined : CompositeDecl | None
            The composite defined by a body, None for a plain reference.

        """
        keyword = self._next()
        kind = keyword.lexeme
        with self._within(kind):
            attributes = self._attributes()
            tag = None
            if self._peek().kind == IDENTIFIER:
                tag = self._next().lexeme
            attributes += self._attributes()
            if not self._peek().is_punct('{'):
                if tag is None:
                    raise self._error("expected '{{' or a tag after '{}'"
                                      .format(kind), self._peek())
                return TypeRef('{} {}'.format(kind, tag)), None

            members = self._composite_body()
            attributes += self._attributes()
            decl = CompositeDecl(kind, tag, members, attributes,
                                 position=keyword.position)
            self._check_members(decl)
            logger.debug('{} {}: {}'.format(kind, tag or '<anonymous>',
                                            decl.member_names()))
            if tag is None:
                return decl, decl
            self._register_tag(decl, keyword)
            return TypeRef(decl.type_name), decl

    def _composite_body(self):
        self._expect('{')
        members = []
        while not self._accept('}'):
            if self._at_eof():
                raise self._error("expected '}' at end of input",
                                  self._peek())
            try:
                members.extend(self._member_declaration())
            except DeclarationSyntaxError as exc:
                self._report(exc)
                self._recover_member()
        return members

    def _member_declaration(self):
        token = self._peek()
        if token.kind == DIRECTIVE:
            self._directive(self._next())
            return []
        if self._accept(';'):
            return []
        if token.is_keyword('typedef'):
            raise self._error('typedef is not allowed inside a {} body'
                              .format(self._constructs[-1]), token, 'typedef')
        if token.is_keyword('_Static_assert'):
            self._skip_until(';')
            return []

        specs = self._declaration_specifiers()
        if specs.storage:
            raise self._error("storage class '{}' in member declaration"
                              .format(specs.storage[0]), token)
        if self._accept(';'):
            defined = specs.defined
            if isinstance(defined, CompositeDecl) and defined.tag is None:
                # anonymous member, its members are hoisted
                return [Field(None, specs.base_type,
                              attributes=specs.attributes,
                              position=token.position)]
            if defined is None:
                logger.debug('member declaration at {} declares nothing'
                             .format(token.position))
            return []

        fields = []
        while True:
            position = self._peek().position
            if self._peek().is_punct(':'):
                name, ctype = None, specs.base_type
            else:
                name, ctype, position = self._declarator(specs.base_type)
            width = None
            if self._accept(':'):
                width = self._bitfield_width()
            attributes = specs.attributes + self._attributes()
            fields.append(Field(name, ctype, width, attributes, position))
            if self._accept(','):
                continue
            self._expect(';')
            return fields

    def _bitfield_width(self):
        token = self._peek()
        tokens = self._expression_tokens(',', ';')
        if not tokens:
            raise self._error('expected bit-field width {}'
                              .format(self._before(token)), token)
        width = self._constant(tokens)
        if isinstance(width, int) and width < 0:
            raise self._error('negative width in bit-field', token)
        return width

    def _check_members(self, decl):
        """Report duplicated member names and misplaced flexible arrays.

        """
        last = len(decl.members) - 1
        for index, field in enumerate(decl.members):
            if field.is_flexible_array and index != last:
                self._report(DeclarationSyntaxError(
                    "flexible array member '{}' not at end of {}"
                    .format(field.name, decl.kind),
                    field.position.line if field.position else None,
                    field.position.column if field.position else None,
                    self.path, decl.kind))
        seen = set()
        for field in decl.iter_fields():
            if field.name in seen:
                self._report(DeclarationSyntaxError(
                    "duplicate member '{}'".format(field.name),
                    field.position.line if field.position else None,
                    field.position.column if field.position else None,
                    self.path, decl.kind))
            seen.add(field.name)

    # =========================================================================
    # --- Enums
    # =========================================================================

    def _enum_specifier(self):
        keyword = self._next()
        with self._within('enum'):
            self._attributes()
            tag = None
            if self._peek().kind == IDENTIFIER:
                tag = self._next().lexeme
            self._attributes()
            if not self._peek().is_punct('{'):
                if tag is None:
                    raise self._error("expected '{' or a tag after 'enum'",
                                      self._peek())
                return TypeRef('enum ' + tag), None

            decl = EnumDecl(tag, self._enum_body(), position=keyword.position)
            self._attributes()
            for name, value in decl.resolved_values(self.constants):
                if value is not None:
                    self.constants[name] = value
            logger.debug('enum {}: {}'.format(tag or '<anonymous>',
                                              decl.values))
            if tag is None:
                return decl, decl
            self._register_tag(decl, keyword)
            return TypeRef(decl.type_name), decl

    def _enum_body(self):
        self._expect('{')
        values = []
        while not self._accept('}'):
            token = self._peek()
            if token.kind != IDENTIFIER:
                raise self._error('expected identifier {}'
                                  .format(self._before(token)), token)
            self._next()
            self._attributes()
            explicit = None
            if self._accept('='):
                tokens = self._expression_tokens(',', '}')
                if not tokens:
                    raise self._error('expected expression {}'
                                      .format(self._before(self._peek())),
                                      self._peek())
                explicit = _join_tokens(tokens)
            values.append((token.lexeme, explicit))
            if not self._accept(','):
                if not self._peek().is_punct('}'):
                    raise self._error("expected ',' or '}}' {}"
                                      .format(self._before(self._peek())),
                                      self._peek())
        return values

    # =========================================================================
    # --- Declarators
    # =========================================================================

    def _starts_nested_declarator(self):
        """Tell whether the '(' at the current position opens a nested
        declarator rather than a parameter list.

        """
        token = self._peek(1)
        if token.is_punct('*', '(', '^') or token.kind == ATTRIBUTE:
            return True
        if token.kind == IDENTIFIER:
            return not self._is_type_name(token.lexeme)
        return False

    def _declarator(self, base_type, abstract=False):
        """Parse a declarator and apply it to base_type.

        Parameters
        ----------
        base_type : CType
            Type given by the declaration specifiers.
        abstract : bool, optional
            Whether the name may be omitted (parameters).

        Returns
        -------
        name : str | None
        ctype : CType
        position : SourcePosition
            Position of the name, or of the declarator start if abstract.

        """
        name, position, apply = self._declarator_parts(abstract)
        return name, apply(base_type), position

    def _declarator_parts(self, abstract):
        pointers = []
        while self._accept('*'):
            pointers.append(self._type_qualifiers())
        self._attributes()

        name = None
        inner = None
        position = self._peek().position
        token = self._peek()
        if token.is_punct('(') and self._starts_nested_declarator():
            self._next()
            name, position, inner = self._declarator_parts(abstract)
            self._expect(')')
        elif token.kind == IDENTIFIER:
            name = self._next().lexeme
        elif not abstract:
            raise self._error("expected identifier or '(' {}"
                              .format(self._before(token)), token)

        suffixes = []
        while True:
            if self._accept('['):
                suffixes.append(self._array_suffix())
            elif self._peek().is_punct('('):
                suffixes.append(self._function_suffix())
            else:
                break

        def apply(ctype):
            for quals in pointers:
                ctype = PointerType(ctype, quals)
            for suffix in reversed(suffixes):
                ctype = suffix(ctype)
            if inner is not None:
                ctype = inner(ctype)
            return ctype

        return name, position, apply

    def _array_suffix(self):
        tokens = [token for token in self._expression_tokens(']')
                  if not (token.kind == KEYWORD and
                          token.lexeme in ('static', 'const', 'volatile',
                                           'restrict'))]
        self._expect(']')
        if not tokens or (len(tokens) == 1 and tokens[0].is_punct('*')):
            size = None
        else:
            size = self._constant(tokens)
        return lambda ctype: ArrayType(ctype, size)

    def _function_suffix(self):
        params, variadic = self._parameter_list()
        return lambda ctype: FunctionType(ctype, params, variadic)

    def _parameter_list(self):
        """Parse '(...)' after a declarator.

        Returns
        -------
        params : list[tuple[str | None, CType]] | None
            None for '()', an empty list for '(void)'.
        variadic : bool

        """
        self._expect('(')
        if self._accept(')'):
            return None, False
        if self._peek().is_keyword('void') and self._peek(1).is_punct(')'):
            self._next()
            self._next()
            return [], False

        with self._within('parameter'):
            params = []
            variadic = False
            while True:
                if self._accept('...'):
                    variadic = True
                    self._expect(')')
                    break
                specs = self._declaration_specifiers()
                name, ctype, _ = self._declarator(specs.base_type,
                                                  abstract=True)
                self._attributes()
                params.append((name, ctype))
                if self._accept(','):
                    continue
                self._expect(')')
                break
        return params, variadic


def parse_source(text, path=None, registry=None):
    """Parse a C source text.

    Returns
    -------
    CParser
        The parser, holding declarations, includes and errors.

    """
    parser = CParser(registry, path)
    parser.parse(text)
    return parser
