"""Branch-name validation table.

Names rejected here never reach the branch list, so they must also never be
passed to ``git`` as refs.
"""

from __future__ import annotations

import unittest

from infradeck.branch_names import is_valid_branch_name


class BranchNameValidationTests(unittest.TestCase):
    def test_accepts_ordinary_names(self) -> None:
        for name in ("main", "feature/x", "release-1.2", "dev_env", "team/a/b"):
            with self.subTest(name=name):
                self.assertTrue(is_valid_branch_name(name))

    def test_rejects_malformed_names(self) -> None:
        for name in ("", "a b", "a..b", "foo/", "-x", "a~b", "a^b", "a:b", "a?b", "a*b", "a[b", "a\\b", "a@b", "a{b"):
            with self.subTest(name=name):
                self.assertFalse(is_valid_branch_name(name))

    def test_reflog_syntax_is_rejected(self) -> None:
        self.assertFalse(is_valid_branch_name("main@{1}"))


if __name__ == "__main__":
    unittest.main()
