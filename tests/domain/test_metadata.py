"""Tests for TypeMetadataCache: member selection, recursion and async propagation."""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Annotated, final

import pytest

from graphval.domain.context import ValidationContext
from graphval.domain.metadata import EMPTY_METADATA, TypeMetadata, TypeMetadataCache
from graphval.domain.rules import MinLength, Required
from graphval.domain.types import Display, SkipRecursion, SkipValidation, ValidationFailure
from graphval.domain.validatable import AsyncValidatableObject, ValidatableObject


class Address:
    street: Annotated[str | None, Required()]


class Person:
    name: str
    address: Address | None
    nickname: str | None
    age: int


class Team:
    members: list[Person]


class Link:
    next: Link | None


class Node:
    next: Node | None
    value: Annotated[str | None, Required()]


class StrictLink:
    next: Link
    following: StrictLink


@final
class Sealed:
    value: int


class Open:
    pass


class SealedHolder:
    sealed: Sealed | None


class OpenHolder:
    thing: Open | None


class Skipper:
    address: Annotated[Address, SkipValidation()]


class NoDescent:
    address: Annotated[Address, SkipRecursion()]


class Labeled:
    code: Annotated[str | None, Required(), Display("Product code")]


class SelfChecked(ValidatableObject):
    def validate_object(self, context: ValidationContext) -> Iterable[ValidationFailure]:
        return []


class AsyncChecked(AsyncValidatableObject):
    async def validate_object_async(
        self, context: ValidationContext
    ) -> Iterable[ValidationFailure]:
        return []


class AsyncHolder:
    things: list[AsyncChecked] | None


class Outer:
    holder: AsyncHolder | None
    label: str | None


@dataclass
class Product:
    sku: str | None = field(default=None, metadata={"graphval": [Required(), Required()]})


@final
class Leaf:
    name: Annotated[str | None, Required()]
    holder: Holder | None


class Holder:
    leaf: Leaf | None


class Box:
    label: Annotated[str | None, Required()]
    hidden: Annotated[AsyncChecked | None, SkipValidation()]
    shallow: Annotated[AsyncChecked | None, SkipRecursion()]


class Chainlet:
    next: Annotated[Chainlet | None, Required()]


class Loop:
    following: Loop


@pytest.fixture
def cache() -> TypeMetadataCache:
    return TypeMetadataCache()


def _names(metadata: TypeMetadata) -> list[str]:
    return [m.name for m in metadata.members]


class TestMemberSelection:
    def test_rules_required_and_recursing_members_kept(self, cache: TypeMetadataCache) -> None:
        metadata = cache.get(Person)
        assert _names(metadata) == ["name", "address"]
        name, address = metadata.members
        assert name.is_required_by_declaration is True
        assert name.recurse is False
        assert address.recurse is True
        assert address.is_required_by_declaration is False

    def test_rule_member(self, cache: TypeMetadataCache) -> None:
        (street,) = cache.get(Address).members
        assert street.rules == (Required(),)
        assert street.has_rules

    def test_duplicate_rules_removed(self, cache: TypeMetadataCache) -> None:
        (sku,) = cache.get(Product).members
        assert sku.rules == (Required(),)

    def test_display_name(self, cache: TypeMetadataCache) -> None:
        (code,) = cache.get(Labeled).members
        assert code.display_name == "Product code"
        assert code.label == "Product code"

    def test_collection_member_records_element_type(self, cache: TypeMetadataCache) -> None:
        (members,) = cache.get(Team).members
        assert members.is_iterable
        assert members.element_type is Person
        assert members.recurse is True

    def test_skip_validation_excludes_member(self, cache: TypeMetadataCache) -> None:
        assert cache.get(Skipper).members == ()

    def test_skip_recursion_keeps_checks(self, cache: TypeMetadataCache) -> None:
        (address,) = cache.get(NoDescent).members
        assert address.recurse is False
        assert address.is_required_by_declaration is True

    def test_terminal_and_non_class_inputs(self, cache: TypeMetadataCache) -> None:
        assert cache.get(int) is EMPTY_METADATA
        assert cache.get(None) is EMPTY_METADATA
        assert cache.get("Person") is EMPTY_METADATA  # type: ignore[arg-type]


class TestRecursionDecision:
    def test_self_typed_members_pruned_when_nothing_else_validated(
        self, cache: TypeMetadataCache
    ) -> None:
        assert cache.get(Link).members == ()

    def test_self_typed_members_kept_alongside_validated_members(
        self, cache: TypeMetadataCache
    ) -> None:
        metadata = cache.get(Node)
        assert _names(metadata) == ["next", "value"]
        assert metadata.members[0].recurse is True

    def test_required_self_typed_member_kept(self, cache: TypeMetadataCache) -> None:
        assert "following" in _names(cache.get(StrictLink))

    def test_self_typed_member_with_rules_kept_on_its_own(
        self, cache: TypeMetadataCache
    ) -> None:
        (following,) = cache.get(Chainlet).members
        assert following.rules == (Required(),)
        assert following.recurse is True

    def test_self_typed_member_required_by_declaration_kept_on_its_own(
        self, cache: TypeMetadataCache
    ) -> None:
        (following,) = cache.get(Loop).members
        assert following.is_required_by_declaration is True

    def test_mutual_references_independent_of_request_order(self) -> None:
        leaf_first = TypeMetadataCache()
        leaf_first.get(Leaf)
        holder_first = TypeMetadataCache()
        holder_first.get(Holder)

        assert leaf_first.get(Holder) == holder_first.get(Holder)
        assert leaf_first.get(Leaf) == holder_first.get(Leaf)
        (leaf,) = leaf_first.get(Holder).members
        assert leaf.recurse is True

    def test_final_class_without_members_not_descended(self, cache: TypeMetadataCache) -> None:
        assert cache.get(SealedHolder).members == ()

    def test_open_class_descended_for_subclasses(self, cache: TypeMetadataCache) -> None:
        (thing,) = cache.get(OpenHolder).members
        assert thing.recurse is True

    def test_validatable_flags(self, cache: TypeMetadataCache) -> None:
        assert cache.get(SelfChecked).is_validatable is True
        assert cache.get(AsyncChecked).is_async_validatable is True


class TestRequiresAsync:
    def test_async_type(self, cache: TypeMetadataCache) -> None:
        assert cache.get(AsyncChecked).requires_async is True

    def test_propagates_through_elements_and_members(self, cache: TypeMetadataCache) -> None:
        assert cache.get(AsyncHolder).requires_async is True
        assert cache.get(Outer).requires_async is True

    def test_sync_graph(self, cache: TypeMetadataCache) -> None:
        assert cache.get(Team).requires_async is False

    def test_skipped_members_do_not_require_async(self, cache: TypeMetadataCache) -> None:
        metadata = cache.get(Box)
        assert _names(metadata) == ["label"]
        assert metadata.requires_async is False


class TestRequiresValidation:
    def test_rules_anywhere(self, cache: TypeMetadataCache) -> None:
        assert cache.requires_validation(
            Address, recurse=False, validate_required_by_declaration=False
        )

    def test_declaration_required_counts_only_when_enabled(
        self, cache: TypeMetadataCache
    ) -> None:
        assert cache.requires_validation(
            Person, recurse=False, validate_required_by_declaration=True
        )
        assert not cache.requires_validation(
            SealedHolder, recurse=True, validate_required_by_declaration=True
        )

    def test_recursing_members_count_only_when_recursing(self, cache: TypeMetadataCache) -> None:
        assert cache.requires_validation(
            OpenHolder, recurse=True, validate_required_by_declaration=False
        )
        assert not cache.requires_validation(
            OpenHolder, recurse=False, validate_required_by_declaration=False
        )

    def test_collections_need_recursion(self, cache: TypeMetadataCache) -> None:
        assert cache.requires_validation(list, recurse=True, validate_required_by_declaration=True)
        assert not cache.requires_validation(
            list, recurse=False, validate_required_by_declaration=True
        )

    def test_validatable_always(self, cache: TypeMetadataCache) -> None:
        assert cache.requires_validation(
            SelfChecked, recurse=False, validate_required_by_declaration=False
        )


class TestCaching:
    def test_computed_once(self, cache: TypeMetadataCache) -> None:
        first = cache.get(Person)
        assert Person in cache
        assert cache.get(Person) is first

    def test_reachable_types_cached(self, cache: TypeMetadataCache) -> None:
        cache.get(Team)
        assert Person in cache
        assert Address in cache

    def test_attribute_provider_merges_rules(self) -> None:
        calls: list[tuple[type, str]] = []

        def provider(owner: type, member_name: str) -> list[object]:
            calls.append((owner, member_name))
            if member_name == "nickname":
                return [MinLength(2), Display("Nick")]
            if member_name == "street":
                return [Required()]
            return []

        cache = TypeMetadataCache(attribute_provider=provider)
        metadata = cache.get(Person)
        nickname = next(m for m in metadata.members if m.name == "nickname")
        assert nickname.rules == (MinLength(2),)
        assert nickname.label == "Nick"
        (street,) = cache.get(Address).members
        assert street.rules == (Required(),)
        assert (Person, "nickname") in calls

    def test_concurrent_first_requests_agree(self) -> None:
        types = [Leaf, Holder, Team, Person, Node, Outer, StrictLink, Chainlet]
        reference = {tp: TypeMetadataCache().get(tp) for tp in types}

        cache = TypeMetadataCache()
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(cache.get, types * 25))

        for tp, metadata in zip(types * 25, results, strict=True):
            assert metadata == reference[tp]
            assert metadata is cache.get(tp)
        assert all(tp in cache for tp in types)
