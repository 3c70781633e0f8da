# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

"""This file can approximately be considered the collection of Supposition going
to really unreasonable lengths to produce pretty output."""

import ast
import hashlib
import inspect
import linecache
import textwrap
import types
from functools import partial
from inspect import Parameter
from io import StringIO
from tokenize import COMMENT, generate_tokens, untokenize
from typing import Any, Callable, Sequence

LAMBDA_DESCRIPTION_CACHE: "dict[Any, str]" = {}
AST_LAMBDAS_CACHE: "dict[tuple, list]" = {}


def extract_all_lambdas(tree):
    lambdas = []

    class Visitor(ast.NodeVisitor):
        def visit_Lambda(self, node):
            lambdas.append(node)

    Visitor().visit(tree)
    return lambdas


def ast_arguments_matches_signature(
    args: ast.arguments, sig: inspect.Signature
) -> bool:
    expected = [
        (p.name, p.kind)
        for p in sig.parameters.values()
        if p.kind not in (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD)
    ]
    actual = [(a.arg, Parameter.POSITIONAL_ONLY) for a in args.posonlyargs]
    actual += [(a.arg, Parameter.POSITIONAL_OR_KEYWORD) for a in args.args]
    actual += [(a.arg, Parameter.KEYWORD_ONLY) for a in args.kwonlyargs]
    return expected == actual


def _lambda_description(f):
    sig = inspect.signature(f)

    def format_lambda(body):
        return (
            f"lambda {str(sig)[1:-1]}: {body}" if sig.parameters else f"lambda: {body}"
        )

    if_confused = format_lambda("<unknown>")

    # A stale "<string>" entry in the linecache returns nonsense to findsource.
    linecache.cache.pop("<string>", None)
    try:
        source_lines, lineno0 = inspect.findsource(f)
        source_lines = tuple(source_lines)
    except (OSError, TypeError):
        return if_confused

    try:
        all_lambdas = AST_LAMBDAS_CACHE[source_lines]
    except KeyError:
        try:
            tree = ast.parse(textwrap.dedent("".join(source_lines)))
        except SyntaxError:
            all_lambdas = []
        else:
            all_lambdas = extract_all_lambdas(tree)
        AST_LAMBDAS_CACHE[source_lines] = all_lambdas

    aligned_sources = {
        format_lambda(ast.unparse(candidate.body))
        for candidate in all_lambdas
        if (
            candidate.lineno <= lineno0 + 1 <= candidate.end_lineno
            and ast_arguments_matches_signature(candidate.args, sig)
        )
    }
    # With several distinct lambdas on one line we can't tell which is ours.
    if len(aligned_sources) == 1:
        return next(iter(aligned_sources))
    return if_confused


def lambda_description(f):
    """Returns a syntactically-valid expression describing ``f``.

    This is usually the lambda definition as it appears in the source code,
    modulo the whitespace and quoting normalisation of ``ast.unparse``, and
    contains ``<unknown>`` for the body if parsing gets confused in any way.
    """
    try:
        return LAMBDA_DESCRIPTION_CACHE[f]
    except (KeyError, TypeError):
        pass
    description = _lambda_description(f)
    try:
        LAMBDA_DESCRIPTION_CACHE[f] = description
    except TypeError:  # pragma: no cover
        pass
    return description


def get_pretty_function_description(f: object) -> str:
    if isinstance(f, partial):
        args = [get_pretty_function_description(f.func)]
        args.extend(map(repr, f.args))
        args.extend(f"{k}={v!r}" for k, v in f.keywords.items())
        return f"partial({', '.join(args)})"
    if not hasattr(f, "__name__"):
        return repr(f)
    name = f.__name__  # type: ignore
    if name == "<lambda>":
        return lambda_description(f)
    elif isinstance(f, (types.MethodType, types.BuiltinMethodType)):
        self = f.__self__
        if not (self is None or inspect.isclass(self) or inspect.ismodule(self)):
            return f"{self!r}.{name}"
    return name


def nicerepr(v: Any) -> str:
    if inspect.isfunction(v):
        return get_pretty_function_description(v)
    elif isinstance(v, type):
        return v.__name__
    else:
        return repr(v)


def repr_call(f: Any, args: Sequence[object], kwargs: "dict[str, object]") -> str:
    bits = [nicerepr(x) for x in args]
    bits.extend(f"{a}={nicerepr(kwargs[a])}" for a in kwargs)

    rep = f if isinstance(f, str) else nicerepr(f)
    if rep.startswith("lambda") and ":" in rep:
        rep = f"({rep})"
    return rep + "(" + ", ".join(bits) + ")"


def function_identity(f: Callable) -> str:
    """A stable, human readable name for ``f`` that is the same across runs,
    as long as the function is not moved or renamed."""
    module = getattr(f, "__module__", None) or "<unknown>"
    name = getattr(f, "__qualname__", None) or get_pretty_function_description(f)
    return f"{module}.{name}"


def _clean_source(src: str) -> bytes:
    """Return the source code as bytes, without decorators or comments, so
    that neither changes the key examples of a function are stored under."""
    src = textwrap.dedent(src)
    try:
        funcdef = ast.parse(src).body[0]
        src = "".join(src.splitlines(keepends=True)[funcdef.lineno - 1 :])
    except Exception:
        pass
    try:
        src = untokenize(
            t for t in generate_tokens(StringIO(src).readline) if t.type != COMMENT
        )
    except Exception:
        pass
    return "\n".join(x.rstrip() for x in src.splitlines() if x.rstrip()).encode()


def function_digest(f: Callable) -> bytes:
    """Returns a digest of the source and signature of ``f``, which is stable
    across runs but changes with almost any edit to the function.

    Digests are not guaranteed unique, but two lambdas or nested functions
    with the same qualified name almost always get different ones.
    """
    hasher = hashlib.sha384()
    try:
        src = inspect.getsource(f)
    except (OSError, TypeError):
        try:
            hasher.update(f.__name__.encode())
        except AttributeError:
            pass
    else:
        hasher.update(_clean_source(src))
    try:
        hasher.update(repr(inspect.signature(f)).encode())
    except (TypeError, ValueError):
        pass
    return hasher.digest()
