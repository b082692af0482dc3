"""
Tests for structpatch.core — value model, changes and identity.

    §1  Scalar equality (bool vs number, int vs float)
    §2  Object / Array structure and immutability
    §3  Identity extraction under every policy
    §4  Change representation
"""

import pytest

from structpatch.core import (
    Array, Change, Identifiable, IdentityPolicy, Object, Op, Positional, Scalar,
    extract_identity, find_identity, has_identities, identity_of,
)
from structpatch.errors import DuplicateIdentityError, MissingIdentityError
from structpatch.formats import from_python


# ═══════════════════════════════════════════════════════════════════
#  §1  SCALARS
# ═══════════════════════════════════════════════════════════════════

class TestScalar:

    def test_equal_values(self):
        assert Scalar("a") == Scalar("a")
        assert Scalar(None) == Scalar(None)

    def test_bool_is_not_a_number(self):
        """Python says True == 1; a document does not."""
        assert Scalar(True) != Scalar(1)
        assert Scalar(False) != Scalar(0)

    def test_int_equals_float(self):
        assert Scalar(1) == Scalar(1.0)
        assert hash(Scalar(1)) == hash(Scalar(1.0))

    def test_hash_separates_bool(self):
        assert len({Scalar(True), Scalar(1)}) == 2

    def test_not_equal_to_raw_value(self):
        assert Scalar(1) != 1


# ═══════════════════════════════════════════════════════════════════
#  §2  OBJECTS AND ARRAYS
# ═══════════════════════════════════════════════════════════════════

class TestContainers:

    def test_object_equality_ignores_field_order(self):
        a = Object({"x": Scalar(1), "y": Scalar(2)})
        b = Object({"y": Scalar(2), "x": Scalar(1)})
        assert a == b
        assert hash(a) == hash(b)

    def test_array_equality_respects_order(self):
        assert Array((Scalar(1), Scalar(2))) != Array((Scalar(2), Scalar(1)))

    def test_object_is_not_array(self):
        assert Object({}) != Array(())

    def test_with_field_leaves_original_untouched(self):
        obj = Object({"a": Scalar(1)})
        new = obj.with_field("b", Scalar(2))
        assert "b" not in obj.entries
        assert new.get("b") == Scalar(2)

    def test_object_copies_its_input(self):
        entries = {"a": Scalar(1)}
        obj = Object(entries)
        entries["b"] = Scalar(2)
        assert obj.get("b") is None

    def test_array_edits(self):
        arr = Array((Scalar(1), Scalar(3)))
        assert arr.inserted(1, Scalar(2)) == Array((Scalar(1), Scalar(2), Scalar(3)))
        assert arr.without_item(0) == Array((Scalar(3),))
        assert arr.with_item(1, Scalar(4)) == Array((Scalar(1), Scalar(4)))
        assert arr == Array((Scalar(1), Scalar(3)))

    def test_frozen(self):
        with pytest.raises(AttributeError):
            Scalar(1).val = 2
        with pytest.raises(AttributeError):
            Object({}).entries = {}


# ═══════════════════════════════════════════════════════════════════
#  §3  IDENTITY
# ═══════════════════════════════════════════════════════════════════

def _toys(*ids):
    return from_python([{"id": i, "name": f"toy {i}"} for i in ids])


class TestIdentity:

    def test_identity_of(self):
        assert identity_of(from_python({"id": "a"})) == "a"
        assert identity_of(from_python({"key": "a"}), "key") == "a"
        assert identity_of(from_python({"name": "a"})) is None
        assert identity_of(Scalar("a")) is None

    def test_non_string_identity_is_missing(self):
        assert identity_of(from_python({"id": 7})) is None

    def test_identifiable_keeps_array_order(self):
        mode = extract_identity(_toys("b", "a", "c"))
        assert isinstance(mode, Identifiable)
        assert list(mode.index) == ["b", "a", "c"]

    def test_empty_array_is_identifiable(self):
        mode = extract_identity(Array(()))
        assert mode == Identifiable({})

    def test_missing_identity_is_positional(self):
        arr = from_python([{"id": "a"}, {"name": "no id"}])
        assert isinstance(extract_identity(arr), Positional)

    def test_scalars_are_positional(self):
        assert isinstance(extract_identity(from_python([1, 2, 3])), Positional)

    def test_numeric_identities_are_positional(self):
        arr = from_python([{"id": 1}, {"id": 2}])
        assert isinstance(extract_identity(arr), Positional)

    def test_duplicate_identity(self):
        with pytest.raises(DuplicateIdentityError) as exc_info:
            extract_identity(_toys("a", "b", "a"), path=("toys",))
        assert exc_info.value.token == "a"
        assert exc_info.value.path == ("toys",)

    def test_required_policy_rejects_missing_identity(self):
        arr = from_python([{"id": "a"}, {"name": "no id"}])
        with pytest.raises(MissingIdentityError) as exc_info:
            extract_identity(arr, policy=IdentityPolicy.REQUIRED, path=("items",))
        assert exc_info.value.index == 1
        assert exc_info.value.path == ("items",)

    def test_positional_policy_ignores_identities(self):
        mode = extract_identity(_toys("a", "b"), policy=IdentityPolicy.POSITIONAL)
        assert isinstance(mode, Positional)

    def test_custom_identity_field(self):
        arr = from_python([{"sku": "x"}, {"sku": "y"}])
        assert isinstance(extract_identity(arr), Positional)
        mode = extract_identity(arr, identity_field="sku")
        assert list(mode.index) == ["x", "y"]

    def test_find_identity(self):
        arr = _toys("a", "b")
        assert find_identity(arr, "b") == 1
        assert find_identity(arr, "z") is None

    def test_has_identities(self):
        assert has_identities(_toys("a"))
        assert not has_identities(Array(()))
        assert not has_identities(from_python([{"id": "a"}, 1]))


# ═══════════════════════════════════════════════════════════════════
#  §4  CHANGE
# ═══════════════════════════════════════════════════════════════════

class TestChange:

    def test_op_wire_names(self):
        assert [str(op) for op in Op] == ["add", "remove", "replace"]

    def test_repr(self):
        remove = Change(Op.REMOVE, ("toys", "toy1"), item_ids=("toy1",))
        replace = Change(Op.REPLACE, ("toys", "toy2", "name"), Scalar("Robot"), ("toy2",))
        assert repr(remove) == "REMOVE /toys/toy1 ids=['toy1']"
        assert repr(replace) == "REPLACE /toys/toy2/name: Scalar('Robot') ids=['toy2']"

    def test_equality(self):
        a = Change(Op.ADD, ("a",), Scalar(1))
        assert a == Change(Op.ADD, ("a",), Scalar(1), ())
        assert a != Change(Op.ADD, ("a",), Scalar(2))
