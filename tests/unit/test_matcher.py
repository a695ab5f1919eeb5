"""
Unit tests for snapshot hostname matching.

Tests cover:
- Primary workload snapshots
- Pre-backup pod snapshots
- Rejection of similarly named environments
"""

import pytest

from webhooks.backup_handler.reconcile.matcher import matches


class TestMatches:
    """Tests for matches()."""

    def test_exact_environment_name(self):
        """The environment's own hostname matches."""
        assert matches("env1", "env1")

    def test_prebackup_pod(self):
        """Pre-backup pods of the environment match."""
        assert matches("env1", "env1-db-prebackuppod")

    def test_prebackup_pod_with_dashes_in_middle(self):
        """The middle part may itself contain dashes."""
        assert matches("project-main", "project-main-mariadb-0-prebackuppod")

    def test_longer_environment_name_rejected(self):
        """A name sharing a prefix is another environment."""
        assert not matches("env1", "env12")

    def test_other_environment_prebackup_pod_rejected(self):
        """Pre-backup pods of another environment do not match."""
        assert not matches("env1", "otherenv-env1-prebackuppod")

    def test_prebackup_pod_of_prefixed_environment_rejected(self):
        """env12's pre-backup pod does not belong to env1."""
        assert not matches("env1", "env12-db-prebackuppod")

    def test_missing_suffix_rejected(self):
        """Hostnames that only start with the environment name don't match."""
        assert not matches("env1", "env1-db")

    def test_trailing_text_after_suffix_rejected(self):
        """The suffix must end the hostname."""
        assert not matches("env1", "env1-db-prebackuppod-x")

    @pytest.mark.parametrize("hostname", ["", "ENV1", " env1", "env1 "])
    def test_near_misses_rejected(self, hostname):
        """Matching is exact, no trimming or case folding."""
        assert not matches("env1", hostname)

    def test_regex_metacharacters_in_name_are_literal(self):
        """Dots in the environment name don't match arbitrary characters."""
        assert matches("a.b", "a.b")
        assert not matches("a.b", "axb")
        assert not matches("a.b", "axb-db-prebackuppod")
