"""
Account hierarchy queries and integrity checks.

The chart of accounts is a forest linked by parent_account_id. An
AccountIndex is built once per account list (id -> account map and
parent id -> children adjacency list) so every traversal costs O(depth)
instead of rescanning the list. Every walk up or down the tree keeps a
visited set, so malformed data with parent cycles cannot recurse forever.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, Union

from .errors import (
    AccountTypeMismatchError,
    CircularReferenceError,
    GLGAAPError,
    ParentAccountNotFoundError,
)
from .models import Account, AccountId, AccountType

logger = logging.getLogger(__name__)


class AccountIndex:
    """
    Lookup structure over a flat account list.
    
    Attributes:
        accounts: Accounts in their original order.
        by_id: Account id -> Account.
        children: Parent account id -> direct children (original order).
    """
    
    def __init__(self, accounts: Iterable[Account]):
        self.accounts: list[Account] = list(accounts)
        self.by_id: dict[AccountId, Account] = {}
        self.children: dict[AccountId, list[Account]] = {}
        
        for account in self.accounts:
            self.by_id[account.id] = account
        for account in self.accounts:
            if account.parent_account_id is not None:
                self.children.setdefault(account.parent_account_id, []).append(account)
    
    def get(self, account_id: AccountId) -> Optional[Account]:
        return self.by_id.get(account_id)
    
    def children_of(self, account_id: AccountId) -> list[Account]:
        return list(self.children.get(account_id, []))
    
    @property
    def roots(self) -> list[Account]:
        return [a for a in self.accounts if a.parent_account_id is None]


AccountsLike = Union[AccountIndex, Sequence[Account]]


def _index(accounts: AccountsLike) -> AccountIndex:
    if isinstance(accounts, AccountIndex):
        return accounts
    return AccountIndex(accounts)


@dataclass
class AccountNode:
    """
    A node of the account tree.
    
    Attributes:
        account: The account at this node.
        children: Direct child nodes.
    """
    
    account: Account
    children: list["AccountNode"] = field(default_factory=list)
    
    @property
    def has_children(self) -> bool:
        return bool(self.children)
    
    @property
    def child_count(self) -> int:
        return len(self.children)
    
    @property
    def descendant_count(self) -> int:
        return sum(1 + child.descendant_count for child in self.children)


# ---------------------------------------------------------------------------
# Tree construction
# ---------------------------------------------------------------------------


def build_account_tree(accounts: AccountsLike) -> list[AccountNode]:
    """
    Build a forest of AccountNodes from a flat account list.
    
    Roots are the accounts without a parent. Accounts whose parent is
    missing, or that sit on a parent cycle, are not reachable from any root
    and do not appear in the tree; validate_hierarchy() reports them.
    
    Args:
        accounts: Account list or prebuilt AccountIndex.
        
    Returns:
        Root nodes in account order.
    """
    index = _index(accounts)
    visited: set[AccountId] = set()
    
    def build_node(account: Account) -> AccountNode:
        visited.add(account.id)
        node = AccountNode(account=account)
        for child in index.children_of(account.id):
            if child.id not in visited:
                node.children.append(build_node(child))
        return node
    
    return [build_node(root) for root in index.roots]


def flatten_tree(nodes: Iterable[AccountNode]) -> list[Account]:
    """Flatten a forest back to a list, depth first (parent before children)."""
    flat: list[Account] = []
    stack = list(reversed(list(nodes)))
    while stack:
        node = stack.pop()
        flat.append(node.account)
        stack.extend(reversed(node.children))
    return flat


# ---------------------------------------------------------------------------
# Traversal queries
# ---------------------------------------------------------------------------


def find_account_by_id(accounts: AccountsLike, account_id: AccountId) -> Optional[Account]:
    return _index(accounts).get(account_id)


def get_root_accounts(accounts: AccountsLike) -> list[Account]:
    return _index(accounts).roots


def get_direct_children(accounts: AccountsLike, account_id: AccountId) -> list[Account]:
    return _index(accounts).children_of(account_id)


def get_ancestors(accounts: AccountsLike, account_id: AccountId) -> list[Account]:
    """
    Return an account's ancestors, immediate parent first.
    
    The walk stops at a missing parent or when it would revisit an account
    (a parent cycle).
    
    Args:
        accounts: Account list or prebuilt AccountIndex.
        account_id: Account whose ancestors are wanted.
        
    Returns:
        Ancestors from parent to root; empty for roots and unknown ids.
    """
    index = _index(accounts)
    account = index.get(account_id)
    if account is None:
        return []
    
    ancestors: list[Account] = []
    visited = {account.id}
    parent_id = account.parent_account_id
    while parent_id is not None and parent_id not in visited:
        parent = index.get(parent_id)
        if parent is None:
            break
        ancestors.append(parent)
        visited.add(parent_id)
        parent_id = parent.parent_account_id
    return ancestors


def get_descendants(accounts: AccountsLike, account_id: AccountId) -> list[Account]:
    """Return every account below *account_id*, depth first."""
    index = _index(accounts)
    descendants: list[Account] = []
    visited = {account_id}
    stack = list(reversed(index.children_of(account_id)))
    while stack:
        account = stack.pop()
        if account.id in visited:
            continue
        visited.add(account.id)
        descendants.append(account)
        stack.extend(reversed(index.children_of(account.id)))
    return descendants


def get_depth(accounts: AccountsLike, account_id: AccountId) -> int:
    """Number of ancestors (0 for roots and unknown ids)."""
    return len(get_ancestors(accounts, account_id))


def get_siblings(accounts: AccountsLike, account_id: AccountId) -> list[Account]:
    """Accounts sharing the same parent (other roots, for a root), excluding itself."""
    index = _index(accounts)
    account = index.get(account_id)
    if account is None:
        return []
    if account.parent_account_id is None:
        candidates = index.roots
    else:
        candidates = index.children_of(account.parent_account_id)
    return [a for a in candidates if a.id != account_id]


def get_root_ancestor(accounts: AccountsLike, account_id: AccountId) -> Optional[Account]:
    """Topmost ancestor, or None if the account is itself a root (or unknown)."""
    ancestors = get_ancestors(accounts, account_id)
    return ancestors[-1] if ancestors else None


def get_path(accounts: AccountsLike, account_id: AccountId) -> list[Account]:
    """Accounts from the root down to *account_id* inclusive."""
    index = _index(accounts)
    account = index.get(account_id)
    if account is None:
        return []
    return list(reversed(get_ancestors(index, account_id))) + [account]


def is_ancestor_of(accounts: AccountsLike, ancestor_id: AccountId, account_id: AccountId) -> bool:
    return any(a.id == ancestor_id for a in get_ancestors(accounts, account_id))


def is_descendant_of(accounts: AccountsLike, account_id: AccountId, ancestor_id: AccountId) -> bool:
    return is_ancestor_of(accounts, ancestor_id, account_id)


def find_by_type(accounts: AccountsLike, account_type: AccountType) -> list[Account]:
    return [a for a in _index(accounts).accounts if a.account_type is account_type]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_parent_child_type(child: Account, parent: Account) -> Optional[AccountTypeMismatchError]:
    """Return an error if a child's type differs from its parent's type."""
    if child.account_type is parent.account_type:
        return None
    return AccountTypeMismatchError(
        child.id, child.account_type, parent.id, parent.account_type
    )


def validate_hierarchy(accounts: AccountsLike) -> list[GLGAAPError]:
    """
    Check parent references and detect parent cycles.
    
    Runs two independent passes and accumulates every violation:
    
    1. Each parent reference must resolve (ParentAccountNotFoundError) to an
       account of the same type (AccountTypeMismatchError).
    2. Each account's parent chain is walked with its own visited set. When
       an id repeats, a CircularReferenceError with the walked chain is
       recorded and that walk stops. A cycle reached from several starting
       accounts is reported once.
    
    Args:
        accounts: Account list or prebuilt AccountIndex.
        
    Returns:
        List of errors; empty when the hierarchy is valid.
    """
    index = _index(accounts)
    errors: list[GLGAAPError] = []
    
    # Pass 1: parent existence and type agreement
    for account in index.accounts:
        if account.parent_account_id is None:
            continue
        parent = index.get(account.parent_account_id)
        if parent is None:
            errors.append(ParentAccountNotFoundError(account.id, account.parent_account_id))
            continue
        mismatch = validate_parent_child_type(account, parent)
        if mismatch is not None:
            errors.append(mismatch)
    
    # Pass 2: cycle detection
    reported_cycles: set[frozenset] = set()
    for account in index.accounts:
        chain = [account.id]
        visited = {account.id}
        current = account
        while current.parent_account_id is not None:
            parent_id = current.parent_account_id
            if parent_id in visited:
                chain.append(parent_id)
                cycle = frozenset(chain[chain.index(parent_id):])
                if cycle not in reported_cycles:
                    reported_cycles.add(cycle)
                    errors.append(CircularReferenceError(account.id, chain))
                break
            parent = index.get(parent_id)
            if parent is None:
                break
            chain.append(parent_id)
            visited.add(parent_id)
            current = parent
    
    if errors:
        logger.debug(f"Hierarchy validation found {len(errors)} problem(s)")
    return errors
