# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from pathlib import Path

import pytest

from xfork.emit import emit, render_generated
from xfork.errors import ClassificationError, TrimError
from xfork.parser import load, parse_source
from xfork.parser.ast import ConstDecl, FuncDecl, ImportSpec, TypeName, VarDecl
from xfork.trim import NotSimpleError, accepted_imports, ensure_simple, trim

TESTDATA = Path(__file__).resolve().parents[1] / "testdata"


def _names(tree) -> list[str]:
	return [d.name for d in tree.decls]


def test_nobackend_matches_golden_api() -> None:
	result = trim(load(TESTDATA / "exampleRealBackend" / "nobackend.go"))
	got = render_generated(result.api, skipped=result.skipped)
	want = (TESTDATA / "derivedapi.golden.go").read_text(encoding="utf-8")
	assert got == want


def test_round_trip_scenario() -> None:
	tree = parse_source(
		"""
package backend

const Enabled = true

func Digest(data []byte) []byte { return data }
"""
	)
	result = trim(tree)
	assert result.skipped == ()
	enabled, digest = result.api.decls
	assert isinstance(enabled, ConstDecl)
	assert enabled.value is not None and enabled.value.text == "true"
	assert isinstance(digest, FuncDecl)
	assert digest.body is None
	assert digest.linkname == "crypto/internal/backend.Digest"


def test_trim_is_idempotent() -> None:
	first = trim(load(TESTDATA / "exampleRealBackend" / "nobackend.go")).api
	again = trim(first)
	assert again.skipped == ()
	assert _names(again.api) == _names(first)
	assert emit(again.api) == emit(first)

	reloaded = load(TESTDATA / "derivedapi.golden.go")
	third = trim(reloaded)
	assert third.skipped == ()
	assert emit(third.api) == emit(first)


def test_visibility_and_linkage_invariants() -> None:
	api = trim(load(TESTDATA / "exampleRealBackend" / "nobackend.go")).api
	assert api.decls
	for decl in api.decls:
		assert decl.exported
		if isinstance(decl, ConstDecl):
			assert not hasattr(decl, "linkname")
		else:
			assert isinstance(decl, (VarDecl, FuncDecl))
			assert decl.linkname == f"crypto/internal/backend.{decl.name}"


def test_types_unexported_and_methods_are_dropped() -> None:
	tree = parse_source(
		"""
package backend

import "hash"

const Enabled = false

type Hash = hash.Hash

var cache int

func (h *hmac) Reset() {}

func helper() {}

func NewSHA1() hash.Hash { panic("") }
"""
	)
	result = trim(tree)
	assert _names(result.api) == ["Enabled", "NewSHA1"]
	assert result.skipped == ()


def test_generic_function_is_skipped() -> None:
	tree = parse_source(
		"""
package backend

import "hash"

const Enabled = false

func ExpandHKDF[H hash.Hash](h func() H, secret []byte) ([]byte, error) { panic("") }
"""
	)
	result = trim(tree)
	assert _names(result.api) == ["Enabled"]
	assert [s.format() for s in result.skipped] == ['Skipped "ExpandHKDF": generic function']


def test_internal_and_vendored_packages_are_not_accepted() -> None:
	tree = parse_source(
		"""
package backend

import (
	"crypto/internal/boring"
	"github.com/golang-fips/openssl/v2"
	"hash"
)

const Enabled = true

func NewSHA1() hash.Hash { return openssl.NewSHA1() }

func NewRSA(n openssl.BigInt) error { return nil }

func Unwrap(b *boring.Block) error { return nil }
"""
	)
	assert set(accepted_imports(tree)) == {"hash"}
	result = trim(tree)
	assert _names(result.api) == ["Enabled", "NewSHA1"]
	assert [s.reason for s in result.skipped] == [
		"openssl.BigInt uses unimported package",
		"boring.Block uses unimported package",
	]
	assert [i.path for i in result.api.imports] == ["hash"]


def test_unsupported_type_shapes() -> None:
	with pytest.raises(NotSimpleError) as excinfo:
		ensure_simple(parse_source("package p\n\nvar X map[string]int\n").decls[0].type, {}, set())
	assert str(excinfo.value) == "unsupported type map[string]int"

	tree = parse_source(
		"""
package backend

const Enabled = true

func Pipe(c chan int) {}

func Drain(c <-chan int) {}

func Fill(c chan<- []byte) {}

func Unbox(b Box[int]) int { return 0 }

func Keys() []maps.Set[string] { return nil }
"""
	)
	result = trim(tree)
	assert _names(result.api) == ["Enabled"]
	assert [s.format() for s in result.skipped] == [
		'Skipped "Pipe": unsupported type chan int',
		'Skipped "Drain": unsupported type <-chan int',
		'Skipped "Fill": unsupported type chan<- []byte',
		'Skipped "Unbox": uses generic type Box[int]',
		'Skipped "Keys": uses generic type maps.Set[string]',
	]


def test_var_type_from_directive_then_fallback() -> None:
	tree = parse_source(
		"""
package backend

import (
	"crypto"
	"github.com/golang-fips/openssl/v2"
)

const Enabled = true

// xcrypto_backend_map:type=crypto.Hash
// xcrypto_backend_map:type=int
const DefaultHash = openssl.DefaultHash

const RandReader = openssl.RandReader

var Version string = openssl.Version
"""
	)
	api = trim(tree).api
	enabled, default_hash, rand, version = api.decls
	assert isinstance(default_hash, VarDecl)
	assert default_hash.type == TypeName(name="Hash", package="crypto")
	assert default_hash.value is None
	assert rand.type == TypeName(name="Reader", package="io")
	assert version.type == TypeName(name="string")
	assert ImportSpec(path="io") in api.imports
	assert [i.path for i in api.imports] == ["crypto", "io"]


def test_missing_types_name_every_symbol() -> None:
	tree = parse_source(
		"""
package backend

const Enabled = true

var A = x.A

// xcrypto_backend_map:type=
var B = x.B

var C = x.C
""",
		filename="cng_windows.go",
	)
	with pytest.raises(TrimError) as excinfo:
		trim(tree)
	err = excinfo.value
	assert err.symbols == ("A", "B", "C")
	assert err.filename == "cng_windows.go"
	assert 'use "// xcrypto_backend_map:type=<...>"' in err.message
	assert "cng_windows.go:6:5: could not determine type for A" in err.message
	assert "empty type directive on B" in err.message


def test_unknown_directive_is_trim_error() -> None:
	tree = parse_source(
		"""
package backend

const Enabled = true

// xcrypto_backend_map:nosplit
func F() {}
"""
	)
	with pytest.raises(TrimError) as excinfo:
		trim(tree)
	assert excinfo.value.symbols == ("F",)
	assert "'nosplit'" in excinfo.value.message


def test_unknown_directive_on_unconsumed_declarations() -> None:
	tree = parse_source(
		"""
package backend

// xcrypto_backend_map:noescpae
const Enabled = true

// xcrypto_backend_map:bogus
func helper() {}

// xcrypto_backend_map:inline
func Expand[H any](h H) {}

// xcrypto_backend_map:noinline
func Kept() {}
""",
		filename="typo_linux.go",
	)
	with pytest.raises(TrimError) as excinfo:
		trim(tree)
	err = excinfo.value
	assert err.symbols == ("Enabled", "helper", "Expand")
	assert "typo_linux.go:4:1: unrecognized xcrypto_backend_map command 'noescpae' on Enabled" in err.message
	assert "'bogus'" in err.message and "'inline'" in err.message


def test_pragmas_from_directives_and_existing_pragmas() -> None:
	tree = parse_source(
		"""
package backend

const Enabled = true

//go:noinline
// xcrypto_backend_map:noescape
// xcrypto_backend_map:noinline
func F(p []byte) {}
"""
	)
	(_, f) = trim(tree).api.decls
	assert f.pragmas == ("noinline", "noescape")


def test_bad_enabled_propagates() -> None:
	with pytest.raises(ClassificationError):
		trim(parse_source("package backend\n\nconst Enabled = yes\n"))
