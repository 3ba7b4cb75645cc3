"""
Store invariants and their verification.

Defines and checks the guarantees a store must keep on disk.
"""

from typing import Callable, List

from .errors import InvariantViolationError, ObjectCorruptedError, ObjectNotFoundError


class Invariant:
    """
    Represents a store invariant that must always hold.
    """

    def __init__(self, name: str, description: str, check_func: Callable[[], List[str]]):
        """
        Define an invariant.

        Args:
            name: short invariant name
            description: detailed description of the invariant
            check_func: function returning the list of violations found
        """
        self.name = name
        self.description = description
        self.check_func = check_func

    def verify(self) -> bool:
        """
        Verify this invariant holds.

        Returns True if holds, raises InvariantViolationError if not.
        """
        try:
            violations = self.check_func()
        except InvariantViolationError:
            raise
        except Exception as e:
            raise InvariantViolationError(
                self.name,
                f"Check function raised exception: {e}\n{self.description}"
            ) from e

        if violations:
            raise InvariantViolationError(self.name, "; ".join(violations))
        return True


class InvariantRegistry:
    """
    Registry of store invariants.

    Provides centralized management and verification of invariants.
    """

    def __init__(self):
        self.invariants: List[Invariant] = []

    def register(self, name: str, description: str, check_func: Callable[[], List[str]]) -> None:
        """Register a new invariant."""
        self.invariants.append(Invariant(name, description, check_func))

    def verify_all(self) -> dict:
        """
        Verify all registered invariants.

        Returns dict with:
            - passed: list of invariant names that passed
            - failed: list of (name, error) tuples for failed invariants
            - all_passed: bool indicating if all passed
        """
        result = {
            'passed': [],
            'failed': [],
            'all_passed': True,
        }

        for invariant in self.invariants:
            try:
                invariant.verify()
                result['passed'].append(invariant.name)
            except InvariantViolationError as e:
                result['failed'].append((invariant.name, str(e)))
                result['all_passed'] = False

        return result

    def verify_one(self, name: str) -> bool:
        """
        Verify a specific invariant by name.

        Returns True if passed, raises InvariantViolationError if failed.
        """
        for invariant in self.invariants:
            if invariant.name == name:
                return invariant.verify()

        raise ValueError(f"Unknown invariant: {name}")

    def list_invariants(self) -> List[tuple]:
        """List all registered invariants as (name, description) tuples."""
        return [(inv.name, inv.description) for inv in self.invariants]


def create_core_invariants(store) -> InvariantRegistry:
    """
    Create core invariants for a blob store.

    These are the on-disk guarantees the store must maintain.
    """
    registry = InvariantRegistry()
    layout = store.layout

    def check_content_addressing():
        violations = []
        for obj in store.list():
            try:
                store.verify(obj)
            except ObjectCorruptedError as e:
                violations.append(f"{obj.id} hashes to {e.actual}")
            except ObjectNotFoundError:
                continue
        return violations

    registry.register(
        "content_addressing",
        "Every object's bytes hash to its identifier",
        check_content_addressing
    )

    def check_fanout_placement():
        return [
            f"foreign file in blob area: {path}"
            for path in layout.iter_object_files()
            if layout.object_id_from_path(path) is None
        ]

    registry.register(
        "fanout_placement",
        "Every blob-area file is a valid identifier at its fan-out path",
        check_fanout_placement
    )

    def check_link_targets():
        violations = []
        for obj, paths in store.linked().items():
            if not store.exists(obj):
                violations.extend(
                    f"dangling link {p} -> {obj.id}" for p in paths
                )
        return violations

    registry.register(
        "link_targets_exist",
        "Every staging link into the blob area names a committed object",
        check_link_targets
    )

    return registry


def verify_store_invariants(store) -> dict:
    """
    Verify all invariants for a store instance.

    Returns dict with verification results.
    """
    registry = create_core_invariants(store)
    return registry.verify_all()
