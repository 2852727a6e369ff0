# -----------------------------------------------------------------------------
# Copyright 2025 by kilnheaders Authors, see AUTHORS for more details.
#
# Distributed under the terms of the MIT/X11 license.
#
# The full license is in the file LICENCE, distributed with this software.
# -----------------------------------------------------------------------------
"""The TypeRegistry maps tags and typedef aliases to their declarations for
one header generation run.

Tags (struct/union/enum names) and typedef aliases live in two disjoint
namespaces, so ``typedef struct Car {...} Vehicle;`` registers both 'Car' and
'Vehicle', and ``typedef enum X {...} X;`` is legal.

Besides lookup, the registry computes the set of type declarations a list of
function signatures needs (closure) and an order in which they can be
emitted. Pointers only need the pointee to be declared, so they never create
ordering constraints beyond a forward declaration. Composites containing each
other by value are reported as CycleError.

A struct or union tag that was never registered is an UnresolvedTypeError
when it is used by value. When it is only reached through pointers, or only
named by ``typedef struct X Y;``, it is an opaque type and the closure holds a
forward declaration for it instead. Enum tags are never opaque.

The registry also holds the object-like and function-like macros of the run,
so that two files defining the same macro differently are reported like
conflicting type definitions.

"""
import collections
import collections.abc
import logging

from .c_model import (ENUM, ArrayType, CompositeDecl, EnumDecl, FunctionType,
                      PointerType, TypedefDecl, TypeRef)
from .errors import CycleError, DuplicateDefinitionError, UnresolvedTypeError

logger = logging.getLogger(__name__)


TAG = 'tag'
TYPEDEF = 'typedef'


def iter_type_refs(ctype, through_pointer=False):
    """Iterate over the named type references used by a type.

    Parameters
    ----------
    ctype : CType
        Type to inspect. Anonymous composites and enums are looked into.
    through_pointer : bool, optional
        Whether ctype is itself reached through a pointer.

    Returns
    -------
    iter[tuple[TypeRef, bool]]
        Each reference and whether it is only reached through a pointer.
        Parameters and return type of a function reached through a pointer
        count as reached through that pointer.

    """
    if isinstance(ctype, TypeRef):
        yield ctype, through_pointer
    elif isinstance(ctype, (CompositeDecl, EnumDecl)):
        if ctype.tag is not None:
            yield TypeRef(ctype.type_name), through_pointer
        elif isinstance(ctype, CompositeDecl):
            for member_type in ctype:
                for item in iter_type_refs(member_type, through_pointer):
                    yield item
    elif isinstance(ctype, PointerType):
        for item in iter_type_refs(ctype.base_type, True):
            yield item
    elif isinstance(ctype, (ArrayType, FunctionType)):
        for sub_type in ctype:
            for item in iter_type_refs(sub_type, through_pointer):
                yield item


class TypeRegistry(collections.abc.Mapping):
    """Symbol table of the user defined types of one generation run.

    As a mapping, it is indexed by type names as they appear in C: 'struct
    Point', 'enum Color' or 'Vehicle'.

    Parameters
    ----------
    name : str, optional
        Label used in log messages (typically the source file).

    """

    def __init__(self, name=None):
        self.name = name
        self._entries = {TAG: collections.OrderedDict(),
                         TYPEDEF: collections.OrderedDict()}
        self._origins = {}
        self._index = {}
        self._counter = 0
        self._macros = collections.OrderedDict()
        self._macro_origins = {}

    # --- Mapping interface

    @staticmethod
    def split_type_name(type_name):
        """Map 'struct x' to (TAG, 'x') and 'x' to (TYPEDEF, 'x').

        """
        ref = TypeRef(type_name)
        if ref.is_tag:
            return TAG, ref.name
        return TYPEDEF, ref.name

    def __getitem__(self, type_name):
        namespace, name = self.split_type_name(type_name)
        return self._entries[namespace][name]

    def __iter__(self):
        for key in sorted(self._index, key=self._index.get):
            decl = self._entries[key[0]][key[1]]
            if key[0] == TAG:
                yield decl.type_name
            else:
                yield decl.alias

    def __len__(self):
        return len(self._index)

    # --- Registration

    def register(self, name, namespace, decl, origin=None):
        """Insert or overwrite a declaration.

        A forward declaration (a composite without a body) never replaces a
        complete definition.

        Parameters
        ----------
        name : str
            Tag or alias.
        namespace : str
            TAG or TYPEDEF.
        decl : CompositeDecl | EnumDecl | TypedefDecl
        origin : str, optional
            Source file the declaration comes from.

        """
        entries = self._entries[namespace]
        key = (namespace, name)
        existing = entries.get(name)
        if existing is not None and namespace == TAG:
            if not decl.is_complete:
                return existing
            if not existing.is_complete:
                # the placeholder is superseded by the definition
                self._counter += 1
                self._index[key] = self._counter
        entries[name] = decl
        if key not in self._index:
            self._counter += 1
            self._index[key] = self._counter
        if origin is not None:
            self._origins[key] = origin
        logger.debug('{}: registered {} {!r}'.format(self.name, namespace,
                                                     name))
        return decl

    def resolve(self, name, namespace):
        """Look a tag or alias up.

        Raises
        ------
        UnresolvedTypeError
            If nothing was registered under this name.

        """
        try:
            return self._entries[namespace][name]
        except KeyError:
            kind = 'tag' if namespace == TAG else 'type'
            raise UnresolvedTypeError('unknown {} {!r}'.format(kind, name))

    def get(self, name, namespace=TYPEDEF, default=None):
        return self._entries[namespace].get(name, default)

    def origin(self, name, namespace):
        """Source file a declaration was registered from, if known.

        """
        return self._origins.get((namespace, name))

    def is_typedef_name(self, name):
        return name in self._entries[TYPEDEF]

    def resolve_ref(self, ref):
        """Resolve a TypeRef to its declaration.

        Raises
        ------
        UnresolvedTypeError
            If the name is unknown or a tag is referred to with the wrong
            keyword ('union X' for a struct X).

        """
        if not ref.is_tag:
            return self.resolve(ref.name, TYPEDEF)
        decl = self.resolve(ref.name, TAG)
        if decl.kind != ref.keyword:
            raise UnresolvedTypeError('{!r} is declared as {} {}'
                                      .format(ref.type_name, decl.kind,
                                              ref.name))
        return decl

    def iter_decls(self):
        """Iterate over (namespace, name, decl) in registration order.

        """
        for key in sorted(self._index, key=self._index.get):
            yield key[0], key[1], self._entries[key[0]][key[1]]

    # --- Macros

    def define(self, macro, origin=None):
        """Insert or overwrite a macro definition.

        """
        self._macros[macro.name] = macro
        if origin is not None:
            self._macro_origins[macro.name] = origin
        logger.debug('{}: defined macro {!r}'.format(self.name, macro.name))
        return macro

    def macro(self, name, default=None):
        return self._macros.get(name, default)

    def macro_origin(self, name):
        return self._macro_origins.get(name)

    def iter_macros(self):
        return iter(self._macros.values())

    # --- Merging

    def conflicts(self, other):
        """List the definitions of other that contradict this registry.

        Returns
        -------
        list[DuplicateDefinitionError]

        """
        errors = []
        for namespace, name, decl in other.iter_decls():
            existing = self._entries[namespace].get(name)
            if existing is None or existing == decl:
                continue
            if namespace == TAG and not (existing.is_complete and
                                         decl.is_complete):
                if existing.kind == decl.kind:
                    continue
            what = decl.kind if namespace == TAG else 'typedef'
            message = 'Duplicate {} definitions for {}'.format(what, name)
            where = self._origins.get((namespace, name))
            if where is not None:
                message += ' (first defined in {})'.format(where)
            position = decl.position
            errors.append(DuplicateDefinitionError(
                message,
                position.line if position else None,
                position.column if position else None,
                other.origin(name, namespace)))
        for macro in other.iter_macros():
            existing = self._macros.get(macro.name)
            if existing is None or existing == macro:
                continue
            message = 'Duplicate #define definitions for {}'.format(
                macro.name)
            where = self._macro_origins.get(macro.name)
            if where is not None:
                message += ' (first defined in {})'.format(where)
            position = macro.position
            errors.append(DuplicateDefinitionError(
                message,
                position.line if position else None,
                position.column if position else None,
                other.macro_origin(macro.name)))
        return errors

    def merge(self, other):
        """Merge the declarations of another registry into this one.

        Nothing is merged if other contradicts this registry.

        Returns
        -------
        list[DuplicateDefinitionError]
            The contradictions found, empty on success.

        """
        errors = self.conflicts(other)
        if errors:
            return errors
        for namespace, name, decl in other.iter_decls():
            self.register(name, namespace, decl,
                          other.origin(name, namespace))
        for macro in other.iter_macros():
            if macro.name not in self._macros:
                self.define(macro, other.macro_origin(macro.name))
        return []

    # --- Closure and ordering

    def _key_for(self, ref):
        return (TAG, ref.name) if ref.is_tag else (TYPEDEF, ref.name)

    @staticmethod
    def _label(key, decl):
        if key[0] == TAG:
            return decl.type_name
        return key[1]

    @staticmethod
    def _member_types(decl):
        if isinstance(decl, TypedefDecl):
            return [decl.underlying]
        return list(decl)

    def type_closure(self, signatures):
        """Collect every declaration needed to declare the signatures.

        Parameters
        ----------
        signatures : list[FunctionSignature]

        Returns
        -------
        collections.OrderedDict
            Maps (namespace, name) to the declaration. Tags that were never
            defined and are only reached through pointers, or named by a
            typedef, map to an opaque CompositeDecl without members.

        Raises
        ------
        UnresolvedTypeError
            If a typedef alias is unknown or a tag is unknown and used by
            value.

        """
        found = collections.OrderedDict()
        pending = collections.deque((sig.function_type, sig.position, False)
                                    for sig in signatures)
        while pending:
            ctype, position, through_pointer = pending.popleft()
            for ref, by_pointer in iter_type_refs(ctype, through_pointer):
                key = self._key_for(ref)
                if key in found:
                    continue
                try:
                    decl = self.resolve_ref(ref)
                except UnresolvedTypeError as exc:
                    if (ref.is_tag and by_pointer and ref.keyword != ENUM and
                            self.get(ref.name, TAG) is None):
                        found[key] = CompositeDecl(ref.keyword, ref.name)
                        continue
                    if position is not None:
                        exc.line, exc.column = position
                    raise
                found[key] = decl
                # 'typedef struct X Y;' does not need X to be complete
                opaque = (isinstance(decl, TypedefDecl) and
                          isinstance(decl.underlying, TypeRef) and
                          decl.underlying.is_tag)
                for member_type in self._member_types(decl):
                    pending.append((member_type, decl.position or position,
                                    opaque))
        return found

    def _typedef_value_target(self, key, decls):
        """Follow a typedef chain by value down to the tag it names.

        """
        seen = set()
        while key[0] == TYPEDEF and key not in seen:
            seen.add(key)
            underlying = decls[key].underlying
            if not isinstance(underlying, TypeRef):
                return None
            key = self._key_for(underlying)
            if key not in decls:
                return None
        return key if key[0] == TAG else None

    def _dependencies(self, key, decls):
        """Split the dependencies of a declaration.

        Returns
        -------
        hard : list
            Keys that must be completely emitted before the declaration.
        soft : list
            Tags that only have to be declared (forward declaration).

        """
        decl = decls[key]
        hard, soft = [], []
        if isinstance(decl, TypedefDecl):
            root = decl.underlying
            # 'typedef struct X Y;' declares the tag by itself
            if (isinstance(root, TypeRef) and root.is_tag and
                    root.keyword != ENUM):
                refs = []
            else:
                refs = iter_type_refs(root)
        else:
            refs = (item for member_type in decl
                    for item in iter_type_refs(member_type))
        for ref, by_pointer in refs:
            dep = self._key_for(ref)
            if dep not in decls or (dep == key and by_pointer):
                continue
            if dep[0] == TYPEDEF:
                hard.append(dep)
                if not by_pointer:
                    target = self._typedef_value_target(dep, decls)
                    if target is not None:
                        hard.append(target)
            elif by_pointer and ref.keyword != ENUM:
                soft.append(dep)
            else:
                hard.append(dep)
        return hard, soft

    def _error_at(self, error_class, message, decl, key=None):
        position = getattr(decl, 'position', None)
        path = None if key is None else self._origins.get(key)
        return error_class(message,
                           position.line if position else None,
                           position.column if position else None,
                           path)

    def dependency_order(self, decls):
        """Order declarations so that each comes after what it depends on.

        Parameters
        ----------
        decls : dict
            Maps (namespace, name) to declarations, as returned by
            type_closure.

        Returns
        -------
        forward : list[CompositeDecl]
            Composites that need a forward declaration ahead of all
            definitions.
        ordered : list
            The complete declarations in emission order.

        Raises
        ------
        CycleError
            If composites contain each other by value.
        UnresolvedTypeError
            If an incomplete composite is used by value.

        """
        keys = sorted(decls, key=lambda k: self._index.get(k, 0))
        emitted = collections.OrderedDict()
        forward = collections.OrderedDict()
        visiting = []

        def incomplete(dep):
            return dep[0] == TAG and not decls[dep].is_complete

        def visit(key):
            if key in emitted:
                return
            decl = decls[key]
            if key in visiting:
                chain = visiting[visiting.index(key):] + [key]
                raise self._error_at(
                    CycleError,
                    '{} contains itself by value ({})'.format(
                        self._label(key, decl),
                        ' -> '.join(self._label(k, decls[k]) for k in chain)),
                    decl, key)
            if incomplete(key):
                forward[key] = decl
                return
            visiting.append(key)
            hard, soft = self._dependencies(key, decls)
            for dep in hard:
                if dep == key:
                    raise self._error_at(
                        CycleError, '{} contains itself by value'
                        .format(self._label(key, decl)), decl, key)
                if incomplete(dep):
                    raise self._error_at(
                        UnresolvedTypeError,
                        'incomplete type {} used by value in {}'
                        .format(self._label(dep, decls[dep]),
                                self._label(key, decl)),
                        decl, key)
                visit(dep)
            visiting.pop()
            for dep in soft:
                if dep not in emitted:
                    forward.setdefault(dep, decls[dep])
            emitted[key] = decl

        for key in keys:
            visit(key)

        return list(forward.values()), list(emitted.values())

    def declarations_for(self, signatures):
        """Closure of the signatures in emission order, see type_closure
        and dependency_order.

        """
        return self.dependency_order(self.type_closure(signatures))

    def find_cycles(self):
        """Check every registered composite for containment of itself by
        value.

        Returns
        -------
        list[CycleError]
            One error per cycle, located at the declaration the cycle was
            entered from.

        """
        decls = collections.OrderedDict(((namespace, name), decl)
                                        for namespace, name, decl
                                        in self.iter_decls())
        errors = []
        done = set()
        reported = set()

        def visit(key, stack):
            if key in done:
                return
            if key in stack:
                chain = stack[stack.index(key):] + [key]
                if frozenset(chain) not in reported:
                    reported.add(frozenset(chain))
                    decl = decls[key]
                    errors.append(self._error_at(
                        CycleError,
                        '{} contains itself by value ({})'.format(
                            self._label(key, decl),
                            ' -> '.join(self._label(k, decls[k])
                                        for k in chain)),
                        decl, key))
                return
            if key[0] == TAG and not decls[key].is_complete:
                return
            stack.append(key)
            for dep in self._dependencies(key, decls)[0]:
                visit(dep, stack)
            stack.pop()
            done.add(key)

        for key in decls:
            visit(key, [])
        return errors
