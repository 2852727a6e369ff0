# -----------------------------------------------------------------------------
# Copyright 2025 by kilnheaders Authors, see AUTHORS for more details.
#
# Distributed under the terms of the MIT/X11 license.
#
# The full license is in the file LICENCE, distributed with this software.
# -----------------------------------------------------------------------------
"""Objects in this file model the declarations recovered from a C source
file. The CParser generates them and the header synthesizer renders them
back to C through their c_repr()/c_definition() methods.

The class hierarchy is a closed set:

* CModelBase (base class of all modelled objects)
  * CType (all type names)
    * SimpleType
      * BuiltinType (int, unsigned long, double, size_t ...)
      * TypeRef (references to 'struct x', 'union x', 'enum x' or a typedef
                 alias, resolved lazily against the TypeRegistry)
    * CompositeDecl (struct or union, tagged or anonymous)
    * EnumDecl
    * ComposedType
      * PointerType
      * ArrayType
      * FunctionType
  * Field (member of a CompositeDecl)
  * TypedefDecl
  * FunctionSignature
  * MacroDefinition

"""
import itertools

from .c_expr import evaluate

STRUCT = 'struct'
UNION = 'union'
ENUM = 'enum'

#: Names of the tag keywords.
TAG_KEYWORDS = (STRUCT, UNION, ENUM)

#: Keywords that make up builtin type names.
BUILTIN_SPECIFIERS = frozenset([
    'void', 'char', 'short', 'int', 'long', 'float', 'double', 'signed',
    'unsigned', '_Bool', '_Complex', '__int128', '__signed', '__signed__',
])

#: Typedef names provided by the C standard library headers. They are
#: rendered by name and never looked up in the registry.
STANDARD_TYPEDEFS = frozenset([
    'size_t', 'ssize_t', 'ptrdiff_t', 'intptr_t', 'uintptr_t', 'intmax_t',
    'uintmax_t', 'wchar_t', 'wint_t', 'char16_t', 'char32_t', 'bool',
    'int8_t', 'int16_t', 'int32_t', 'int64_t',
    'uint8_t', 'uint16_t', 'uint32_t', 'uint64_t',
    'int_least8_t', 'int_least16_t', 'int_least32_t', 'int_least64_t',
    'uint_least8_t', 'uint_least16_t', 'uint_least32_t', 'uint_least64_t',
    'int_fast8_t', 'int_fast16_t', 'int_fast32_t', 'int_fast64_t',
    'uint_fast8_t', 'uint_fast16_t', 'uint_fast32_t', 'uint_fast64_t',
    'FILE', 'fpos_t', 'va_list', 'time_t', 'clock_t', 'off_t', 'pid_t',
    'mode_t', 'uid_t', 'gid_t', 'sig_atomic_t', 'jmp_buf', 'div_t',
    'ldiv_t', 'mbstate_t', 'max_align_t', 'pthread_t', 'pthread_mutex_t',
    'pthread_cond_t', 'pthread_attr_t', 'socklen_t',
])


def _lpadded_str(text):
    """An internal helper, returns '' if text is None otherwise ' '+text"""
    if text is None:
        return ''
    else:
        return ' ' + text


def _indented(text):
    return ''.join('    ' + line + '\n' for line in text.split('\n'))


class CModelBase(object):
    """Base class for all modelled objects.

    It provides comparing, copying and displaying for all derived classes.
    The conventions are:
    * __slots__ lists every attribute added by a class.
    * The derived classes __init__ takes **all** attributes of the class
      (including attributes from the parent class) as parameters with the
      same name as the attributes.

    Source positions are informative only and do not take part in
    comparisons.

    """

    __slots__ = ()

    _IGNORED_ON_COMPARE = ('position',)

    def _getattrnames(self):
        """Internal method that lists all fields

        Returns
        -------
        list[str]
            A list of attribute names

        """
        for cls in type(self).__mro__:
            if hasattr(cls, '__slots__'):
                for name in cls.__slots__:
                    yield name

    def copy(self):
        """Creates a shallow copy of this object.

        """
        attrs = {anm: getattr(self, anm) for anm in self._getattrnames()}
        return type(self)(**attrs)

    def __eq__(self, other):
        if type(self) != type(other):
            return False
        return all(getattr(self, anm) == getattr(other, anm)
                   for anm in self._getattrnames()
                   if anm not in self._IGNORED_ON_COMPARE)

    def __ne__(self, other):
        return not self == other

    def __repr__(self):
        code_obj = self.__init__.__code__
        init_params = code_obj.co_varnames[1:code_obj.co_argcount]
        default_vals = dict(zip(reversed(init_params),
                                reversed(self.__init__.__defaults__ or [])))

        def par_repr(param_name):
            val = getattr(self, param_name)
            if param_name not in default_vals:
                yield repr(val)
            else:
                default_val = ([] if param_name in ('quals', 'attributes')
                               else default_vals[param_name])
                if val != default_val:
                    yield param_name + '=' + repr(val)

        return (type(self).__name__ + '(' +
                ', '.join(itertools.chain(*map(par_repr, init_params))) + ')')


class CType(CModelBase):
    """Abstract base class of all objects modelling a C type name.

    Parameters
    ----------
    quals : list[str], optional
        A list of type qualifiers ('const', 'volatile', ...) attached to this
        type.

    """

    __slots__ = ('quals',)

    def __init__(self, quals=None):
        self.quals = quals or []

    def with_quals(self, add_quals):
        """Add type qualifiers to this C Type.

        Does not modify the current type, but creates a new one, if necessary.

        """
        if not add_quals:
            return self
        clone = self.copy()
        clone.quals = clone.quals + list(add_quals)
        return clone

    def c_repr(self, referrer_c_repr=None):
        """Get the c representation of this type.

        Parameters
        ----------
        referrer_c_repr : str, optional
            The declarator part of the declaration or None for an abstract
            type:
            * referrer_c_repr='a' => "int *a[2]"
            * referrer_c_repr=None => "int *[2]"

        Returns
        -------
        repr : str
            Formatted representation of the type.

        """
        raise NotImplementedError()

    def __str__(self):
        return self.c_repr()

    def __iter__(self):
        """Iterate through all CType objects this object is built from.

        """
        return iter([])


class SimpleType(CType):
    """Abstract Base class for non-composed types (BuiltinType and TypeRef).

    Parameters
    ----------
    type_name : str
        Name of the C type

    quals : list[str], optional
        A list of type qualifiers attached to this type.

    """

    __slots__ = ('type_name',)

    def __init__(self, type_name, quals=None):
        super(SimpleType, self).__init__(quals)
        self.type_name = type_name

    def c_repr(self, referrer_c_repr=None):
        return (' '.join(self.quals + [self.type_name]) +
                _lpadded_str(referrer_c_repr))


class BuiltinType(SimpleType):
    """Scalar C types and standard library typedef names, kept as written
    ('unsigned int', 'long long', 'size_t').

    """
    __slots__ = ()


class TypeRef(SimpleType):
    """A reference to a user defined type by name.

    These references have one of the following forms:

     * "``<typedefname>``"
     * "``struct <tag>``"
     * "``union <tag>``"
     * "``enum <tag>``"

    """

    __slots__ = ()

    @property
    def keyword(self):
        """'struct', 'union' or 'enum' for a tag reference, None otherwise.

        """
        head = self.type_name.split(' ', 1)[0]
        return head if head in TAG_KEYWORDS else None

    @property
    def name(self):
        """The tag or alias without the keyword.

        """
        if self.keyword is None:
            return self.type_name
        return self.type_name.split(' ', 1)[1]

    @property
    def is_tag(self):
        return self.keyword is not None


class Field(CModelBase):
    """A member of a struct or union.

    Parameters
    ----------
    name : str | None
        Name of the member. None for an anonymous struct/union member, whose
        own members are then accessible directly on the enclosing type, and
        for unnamed bit-fields.
    type : CType
        Declared type of the member. A bit-field keeps its declared type.
    bitfield_width : int | str | None
        Width of a bit-field. An expression that could not be evaluated is
        kept as written.
    attributes : list[str], optional
        Attribute groups attached to the member.
    position : SourcePosition, optional

    """

    __slots__ = ('name', 'type', 'bitfield_width', 'attributes', 'position')

    def __init__(self, name, type, bitfield_width=None, attributes=None,
                 position=None):
        self.name = name
        self.type = type
        self.bitfield_width = bitfield_width
        self.attributes = attributes or []
        self.position = position

    @property
    def is_flexible_array(self):
        return isinstance(self.type, ArrayType) and self.type.size is None

    @property
    def is_anonymous_member(self):
        return self.name is None and isinstance(self.type, CompositeDecl)

    def c_repr(self):
        result = self.type.c_repr(self.name)
        if self.bitfield_width is not None:
            result += ' : {}'.format(self.bitfield_width)
        for attr in self.attributes:
            result += ' ' + attr
        return result + ';'


class CompositeDecl(CType):
    """Model of a struct or union.

    Parameters
    ----------
    kind : str
        STRUCT or UNION.
    tag : str | None
        The tag of the composite, None for an anonymous one.
    members : list[Field] | None
        Members in source order. None for a forward declaration
        (``struct Name;``) which has no body yet.
    attributes : list[str], optional
        Attribute groups attached to the composite.
    quals : list[str], optional
    position : SourcePosition, optional

    """

    __slots__ = ('kind', 'tag', 'members', 'attributes', 'position')

    def __init__(self, kind, tag=None, members=None, attributes=None,
                 quals=None, position=None):
        super(CompositeDecl, self).__init__(quals)
        self.kind = kind
        self.tag = tag
        self.members = members
        self.attributes = attributes or []
        self.position = position

    @property
    def is_anonymous(self):
        return self.tag is None

    @property
    def is_complete(self):
        return self.members is not None

    @property
    def type_name(self):
        return '{} {}'.format(self.kind, self.tag)

    def iter_fields(self):
        """Iterate over the members accessible by name on this type.

        The members of anonymous struct/union members are hoisted into this
        type's member namespace.

        """
        for field in self.members or ():
            if field.is_anonymous_member:
                for sub_field in field.type.iter_fields():
                    yield sub_field
            elif field.name is not None:
                yield field

    def member_names(self):
        return [field.name for field in self.iter_fields()]

    def member(self, name):
        """Look a member up by name, anonymous members included.

        Raises
        ------
        KeyError
            If no member has this name.

        """
        for field in self.iter_fields():
            if field.name == name:
                return field
        raise KeyError(name)

    def _body_c_repr(self):
        result = self.kind + ' '
        if self.tag is not None:
            result += self.tag + ' '
        result += '{\n'
        for field in self.members:
            result += _indented(field.c_repr())
        result += '}'
        for attr in self.attributes:
            result += ' ' + attr
        return result

    def c_repr(self, referrer_c_repr=None):
        if self.tag is not None or self.members is None:
            # Named composites are referred to by name only.
            head = ' '.join(self.quals + [self.type_name])
            return head + _lpadded_str(referrer_c_repr)
        return (' '.join(self.quals + [self._body_c_repr()]) +
                _lpadded_str(referrer_c_repr))

    def c_definition(self):
        """C code of the full definition, or of the forward declaration if
        there is no body.

        """
        if self.members is None:
            return self.c_forward_declaration()
        return self._body_c_repr() + ';'

    def c_forward_declaration(self):
        return self.type_name + ';'

    def __iter__(self):
        for field in self.members or ():
            yield field.type


class EnumDecl(CType):
    """Model of a C enum.

    Parameters
    ----------
    tag : str | None
        Tag of the enum, None if anonymous.
    values : list[tuple[str, str | None]]
        Enumerators with their explicit value expression as written, or None
        when the value is implicit.
    quals : list[str], optional
    position : SourcePosition, optional

    """

    __slots__ = ('tag', 'values', 'position')

    kind = ENUM

    def __init__(self, tag=None, values=None, quals=None, position=None):
        super(EnumDecl, self).__init__(quals)
        self.tag = tag
        self.values = values
        self.position = position

    @property
    def is_anonymous(self):
        return self.tag is None

    @property
    def is_complete(self):
        return self.values is not None

    @property
    def type_name(self):
        return 'enum ' + self.tag

    def resolved_values(self, known=None):
        """Compute the integer value of every enumerator.

        Unset values take the previous value + 1, starting at 0.

        Parameters
        ----------
        known : dict[str, int], optional
            Enumeration constants defined before this enum.

        Returns
        -------
        list[tuple[str, int | None]]
            None marks a value that depends on an expression which could not
            be evaluated.

        """
        names = dict(known or {})
        result = []
        next_value = 0
        for name, explicit in self.values or ():
            if explicit is None:
                value = next_value
            else:
                value = evaluate(explicit, names)
            result.append((name, value))
            if value is not None:
                names[name] = value
            next_value = None if value is None else value + 1
        return result

    def _body_c_repr(self):
        result = 'enum '
        if self.tag is not None:
            result += self.tag + ' '
        result += '{\n'
        for name, explicit in self.values:
            if explicit is None:
                result += _indented(name + ',')
            else:
                result += _indented('{} = {},'.format(name, explicit))
        return result + '}'

    def c_repr(self, referrer_c_repr=None):
        if self.tag is not None or self.values is None:
            head = ' '.join(self.quals + [self.type_name])
            return head + _lpadded_str(referrer_c_repr)
        return (' '.join(self.quals + [self._body_c_repr()]) +
                _lpadded_str(referrer_c_repr))

    def c_definition(self):
        return self._body_c_repr() + ';'


class ComposedType(CType):
    """Abstract base for types, that are combined with multiple
    type modifiers (PointerType, ArrayType, FunctionType).

    Parameters
    ----------
    base_type : CType
        Base type, which is modified by this type modifier.

    quals : list[str], optional
        A list of type qualifiers attached to this type.

    """

    __slots__ = ('base_type',)

    # Operator precedence of the type modifier, used to add parenthesis when
    # generating the C representation of a complex type. The higher this
    # integer, the higher the precedence.
    PRECEDENCE = 100

    def __init__(self, base_type, quals=None):
        super(ComposedType, self).__init__(quals)
        self.base_type = base_type

    def _par_c_repr(self, referrer_c_repr):
        """Internal method, that parenthesizes referrer_c_repr if the
        operator precedence enforces this.

        """
        if (isinstance(self.base_type, ComposedType) and
                self.PRECEDENCE < self.base_type.PRECEDENCE):
            return self.base_type.c_repr('(' + referrer_c_repr + ')')
        else:
            return self.base_type.c_repr(referrer_c_repr)

    def __iter__(self):
        yield self.base_type


class PointerType(ComposedType):
    """Model of C pointer definition.

    """

    __slots__ = ()

    PRECEDENCE = 90

    def c_repr(self, referrer_c_repr=None):
        result = '*' + ' '.join(self.quals)
        if referrer_c_repr is not None:
            result += (' ' if self.quals else '') + referrer_c_repr
        return self._par_c_repr(result)


class ArrayType(ComposedType):
    """Model of C arrays definition.

    Does not only cover fixed size arrays, but also arrays of
    undefined size: ``arr[]``

    Parameters
    ----------
    base_type : CType
        Type of the elements.

    size : int | str | None
        Size of C array in count of 'base_type' elements. An expression that
        could not be evaluated is kept as written. If None, the size of the
        array is undefined (i.e. "x[]").

    """

    __slots__ = ('size',)

    def __init__(self, base_type, size=None, quals=None):
        if quals:
            raise ValueError('arrays do not support qualifiers')
        super(ArrayType, self).__init__(base_type, quals)
        self.size = size

    def c_repr(self, referrer_c_repr=None):
        size = '' if self.size is None else str(self.size)
        return self._par_c_repr((referrer_c_repr or '') + '[' + size + ']')


class FunctionType(ComposedType):
    """Model of C function signature.

    Parameters
    ----------
    base_type : CType
        Return value of function.

    params : list[tuple[str | None, CType]] | None
        Parameters, where each parameter is represented as tuple of name and
        type. If name is None, the parameter is an anonymous one
        (i.e. "void x(int);"). An empty list stands for '(void)', None for
        the unspecified parameter list '()'.

    variadic : bool, optional
        Whether the parameter list ends with '...'.

    """

    __slots__ = ('params', 'variadic')

    def __init__(self, base_type, params=(), variadic=False, quals=None):
        super(FunctionType, self).__init__(base_type, quals=quals)
        self.params = None if params is None else list(params)
        self.variadic = variadic

    @property
    def return_type(self):
        """Alias of base_type, more descriptive in the context of functions.

        """
        return self.base_type

    def _params_c_repr(self):
        if self.params is None:
            return ''
        parts = [ptype.c_repr(pname) for pname, ptype in self.params]
        if self.variadic:
            parts.append('...')
        return ', '.join(parts) or 'void'

    def c_repr(self, referrer_c_repr=None):
        if referrer_c_repr is None:
            raise ValueError('anonymous function are not allowed')
        return self._par_c_repr(referrer_c_repr +
                                '(' + self._params_c_repr() + ')')

    def __str__(self):
        return self.c_repr('<<funcname>>')

    def __iter__(self):
        yield self.base_type
        for pname, ptype in self.params or ():
            yield ptype


class TypedefDecl(CModelBase):
    """Model of ``typedef <underlying> <alias>;``.

    Parameters
    ----------
    alias : str
        The new type name.
    underlying : CType
        The aliased type.
    position : SourcePosition, optional

    """

    __slots__ = ('alias', 'underlying', 'position')

    def __init__(self, alias, underlying, position=None):
        self.alias = alias
        self.underlying = underlying
        self.position = position

    @property
    def type_name(self):
        return self.alias

    def c_definition(self):
        return 'typedef ' + self.underlying.c_repr(self.alias) + ';'

    def __iter__(self):
        yield self.underlying


class FunctionSignature(CModelBase):
    """A function recovered from its definition in a source file.

    Parameters
    ----------
    name : str
        Name of the function.
    return_type : CType
    parameters : list[tuple[str | None, CType]] | None
        Parameters in declaration order, see FunctionType.params.
    variadic : bool, optional
    storage : list[str], optional
        Storage class and function specifiers ('static', 'inline', ...).
    position : SourcePosition, optional

    """

    __slots__ = ('name', 'return_type', 'parameters', 'variadic', 'storage',
                 'position')

    def __init__(self, name, return_type, parameters=(), variadic=False,
                 storage=None, position=None):
        self.name = name
        self.return_type = return_type
        self.parameters = None if parameters is None else list(parameters)
        self.variadic = variadic
        self.storage = storage or []
        self.position = position

    @property
    def function_type(self):
        return FunctionType(self.return_type, self.parameters, self.variadic)

    @property
    def is_external(self):
        """Whether the function is visible from other translation units.

        """
        return 'static' not in self.storage

    def c_prototype(self):
        specifiers = [spec for spec in self.storage
                      if spec in ('_Noreturn', 'extern')]
        declaration = self.function_type.c_repr(self.name)
        return ' '.join(specifiers + [declaration]) + ';'

    def __iter__(self):
        return iter(self.function_type)


class MacroDefinition(CModelBase):
    """A ``#define`` directive of a source file.

    Parameters
    ----------
    name : str
        Name of the macro.
    parameters : list[str] | None
        Parameter names of a function-like macro, None for an object-like
        one.
    body : str
        Replacement text, continuation lines joined.
    position : SourcePosition, optional

    """

    __slots__ = ('name', 'parameters', 'body', 'position')

    def __init__(self, name, parameters=None, body='', position=None):
        self.name = name
        self.parameters = None if parameters is None else list(parameters)
        self.body = body
        self.position = position

    @property
    def is_function_like(self):
        return self.parameters is not None

    def c_definition(self):
        head = '#define ' + self.name
        if self.parameters is not None:
            head += '(' + ', '.join(self.parameters) + ')'
        return head + _lpadded_str(self.body or None)
