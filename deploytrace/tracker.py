"""
Deployment lineage tracker.

Each pipeline stage reports what it knows through exactly one method:

- record_source_build: source build pushed an image (starts a lineage)
- record_config_update: image tag was written into the HLD repo
- record_manifest_generation: manifests were generated from an HLD commit
- patch_manifest_commit: the manifest commit id became known later

Stages carry no shared transaction id. Entries are linked on image tag
(stage 1 to 2) and HLD commit id or pull request (stage 2 to 3). When no
exact predecessor exists, a new entry is synthesized from the most recent
candidate, or recorded as an orphan, so a stage never fails just because
its lineage is incomplete.

Each call is one query followed by at most one insert or replace, with no
locking in between. Two concurrent reports for the same image tag can both
end up inserting a row; that duplicate is accepted.
"""

from typing import Callable, List, Optional

from .config import TrackerConfig
from .errors import EntryNotFoundError, StorageOperationError
from .keys import new_row_key
from .logger import StructuredLogger, get_logger, reset_logger
from .models import DeploymentEntry
from .normalize import normalize_optional, normalize_text
from .policy import DONOR, MATCHED, describe, expectations, resolve
from .schema import require_identifiers
from .store import EntityStore, SqlEntityStore

STAGE_SOURCE_BUILD = "source_build"
STAGE_CONFIG_UPDATE = "config_update"
STAGE_MANIFEST_GENERATION = "manifest_generation"
STAGE_MANIFEST_PATCH = "manifest_patch"

# Fields copied from a donor when a stage has to start a new entry
CONFIG_UPDATE_DONOR_FIELDS = ["commit_id", "p1", "service", "source_repo"]
MANIFEST_DONOR_FIELDS = [
    "commit_id",
    "env",
    "p1",
    "p2",
    "service",
    "source_repo",
    "hld_repo",
    "image_tag",
]


class DeploymentTracker:
    """Correlates pipeline stage reports into deployment entries."""

    def __init__(
        self,
        store: EntityStore,
        partition_key: str,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Args:
            store: Entity store holding deployment entries
            partition_key: Tracking scope all entries are written under
            logger: Structured logger (default: global logger)
        """
        require_identifiers({"partition_key": partition_key})
        self.store = store
        self.partition_key = partition_key
        self.logger = logger or get_logger()

    @classmethod
    def from_config(cls, config: TrackerConfig) -> "DeploymentTracker":
        """Build a tracker over a SQLite store, configuring the global logger."""
        reset_logger()
        logger = get_logger(level=config.log_level, log_dir=config.log_dir)
        return cls(SqlEntityStore(config.db_path), config.partition_key, logger=logger)

    # Store access

    def _call_store(self, operation: str, func: Callable, *args):
        self.logger.record_store_call(operation)
        try:
            return func(*args)
        except self.store.errors as e:
            self.logger.record_failure(operation, type(e).__name__)
            self.logger.error(
                f"Storage operation failed: {operation}",
                partition_key=self.partition_key,
                error=str(e),
            )
            raise StorageOperationError(operation, e) from e

    def _query(self, field_name: str, field_value: str) -> List[DeploymentEntry]:
        return self._call_store(
            f"query:{field_name}", self.store.query, self.partition_key, field_name, field_value
        )

    def _insert(self, entry: DeploymentEntry) -> None:
        self._call_store("insert", self.store.insert, entry)

    def _replace(self, entry: DeploymentEntry) -> None:
        self._call_store("replace", self.store.replace, entry)

    def _new_entry(self) -> DeploymentEntry:
        return DeploymentEntry(partition_key=self.partition_key, row_key=new_row_key())

    # Stage 1

    def record_source_build(
        self,
        pipeline_id: str,
        image_tag: str,
        service_name: str,
        commit_id: str,
        source_repo: Optional[str] = None,
    ) -> DeploymentEntry:
        """
        Start a new lineage for a source build.

        Args:
            pipeline_id: Identifier of the source build pipeline run (p1)
            image_tag: Image tag the build pushed
            service_name: Service that was built
            commit_id: Source commit that was built
            source_repo: Source repository URL

        Returns:
            The inserted entry
        """
        require_identifiers(
            {
                "pipeline_id": pipeline_id,
                "image_tag": image_tag,
                "service_name": service_name,
                "commit_id": commit_id,
            },
            {"source_repo": source_repo},
        )

        entry = self._new_entry()
        entry.p1 = pipeline_id
        entry.image_tag = image_tag
        entry.service = service_name
        entry.commit_id = commit_id
        entry.source_repo = normalize_optional(source_repo)

        self._insert(entry)
        self.logger.record_outcome(STAGE_SOURCE_BUILD, "created")
        self.logger.info(
            "Added source build details",
            p1=pipeline_id,
            image_tag=image_tag,
            row_key=entry.row_key,
        )
        return entry

    # Stage 2

    def record_config_update(
        self,
        pipeline_id: str,
        image_tag: str,
        hld_commit_id: str,
        env: str,
        pr: Optional[str] = None,
        repo: Optional[str] = None,
    ) -> DeploymentEntry:
        """
        Link an HLD update to the source build that produced its image tag.

        An entry with this image tag whose p2, hld_commit_id and env are each
        unset or equal is updated in place. Otherwise a new entry is inserted,
        copying source build facts from the most recent entry for the tag if
        there is one.

        Args:
            pipeline_id: Identifier of the HLD update pipeline run (p2)
            image_tag: Image tag written into the HLD
            hld_commit_id: Commit made in the HLD repo
            env: Target environment, such as Dev or Staging
            pr: Pull request opened against the HLD repo
            repo: HLD repository URL

        Returns:
            The updated or inserted entry
        """
        require_identifiers(
            {
                "pipeline_id": pipeline_id,
                "image_tag": image_tag,
                "hld_commit_id": hld_commit_id,
                "env": env,
            },
            {"pr": pr, "repo": repo},
        )

        p2 = normalize_text(pipeline_id)
        hld_commit_id = normalize_text(hld_commit_id)
        env = normalize_text(env)
        pr = normalize_optional(pr)
        repo = normalize_optional(repo)

        candidates = self._query("image_tag", image_tag)
        resolution = resolve(
            candidates, expectations(p2=p2, hld_commit_id=hld_commit_id, env=env)
        )

        if resolution.outcome == MATCHED:
            entry = resolution.entry
        else:
            entry = self._new_entry()
            entry.image_tag = image_tag
            if resolution.outcome == DONOR:
                entry.copy_fields(resolution.entry, CONFIG_UPDATE_DONOR_FIELDS)

        entry.p2 = p2
        entry.hld_commit_id = hld_commit_id
        entry.env = env
        entry.set_if_given("pr", pr)
        entry.set_if_given("hld_repo", repo)

        if resolution.outcome == MATCHED:
            self._replace(entry)
        else:
            self._insert(entry)

        self.logger.record_outcome(STAGE_CONFIG_UPDATE, resolution.outcome)
        self.logger.info(
            f"Recorded HLD update for image tag {image_tag}",
            p2=p2,
            row_key=entry.row_key,
            **describe(resolution),
        )
        return entry

    # Stage 3

    def record_manifest_generation(
        self,
        hld_commit_id: str,
        pipeline_id: str,
        manifest_commit_id: Optional[str] = None,
        pr: Optional[str] = None,
        repo: Optional[str] = None,
    ) -> DeploymentEntry:
        """
        Link manifest generation to the HLD update it was built from.

        Candidates are found by HLD commit id, or by pull request when the
        commit id finds nothing. A commit made directly in the HLD repo has
        no predecessor; that is recorded as an orphan, not an error.

        Args:
            hld_commit_id: HLD commit the manifests were generated from
            pipeline_id: Identifier of the manifest generation run (p3)
            manifest_commit_id: Commit made in the manifest repo
            pr: Pull request that merged the HLD commit
            repo: Manifest repository URL

        Returns:
            The updated or inserted entry
        """
        require_identifiers(
            {"hld_commit_id": hld_commit_id, "pipeline_id": pipeline_id},
            {"manifest_commit_id": manifest_commit_id, "pr": pr, "repo": repo},
        )

        hld_commit_id = normalize_text(hld_commit_id)
        p3 = normalize_text(pipeline_id)
        manifest_commit_id = normalize_optional(manifest_commit_id)
        pr = normalize_optional(pr)
        repo = normalize_optional(repo)

        candidates = self._query("hld_commit_id", hld_commit_id)
        lookup = "hld_commit_id"
        if not candidates and pr:
            candidates = self._query("pr", pr)
            lookup = "pr"

        resolution = resolve(
            candidates, expectations(p3=p3, manifest_commit_id=manifest_commit_id)
        )

        if resolution.outcome == MATCHED:
            entry = resolution.entry
        else:
            entry = self._new_entry()
            entry.hld_commit_id = hld_commit_id
            if resolution.outcome == DONOR:
                entry.copy_fields(resolution.entry, MANIFEST_DONOR_FIELDS)

        entry.p3 = p3
        entry.set_if_given("manifest_commit_id", manifest_commit_id)
        entry.set_if_given("pr", pr)
        entry.set_if_given("manifest_repo", repo)

        if resolution.outcome == MATCHED:
            self._replace(entry)
        else:
            self._insert(entry)

        self.logger.record_outcome(STAGE_MANIFEST_GENERATION, resolution.outcome)
        self.logger.info(
            f"Recorded manifest generation for HLD commit {hld_commit_id}",
            p3=p3,
            lookup=lookup,
            row_key=entry.row_key,
            **describe(resolution),
        )
        return entry

    def patch_manifest_commit(
        self,
        pipeline_id: str,
        manifest_commit_id: str,
        repo: Optional[str] = None,
    ) -> DeploymentEntry:
        """
        Set the manifest commit on the entry for a manifest generation run.

        Raises:
            EntryNotFoundError: if no entry carries this p3; nothing is written
        """
        require_identifiers(
            {"pipeline_id": pipeline_id, "manifest_commit_id": manifest_commit_id},
            {"repo": repo},
        )

        p3 = normalize_text(pipeline_id)
        entries = self._query("p3", p3)
        if not entries:
            self.logger.record_outcome(STAGE_MANIFEST_PATCH, "not_found")
            self.logger.error(
                f"No manifest generation found to update manifest commit {manifest_commit_id}",
                p3=p3,
            )
            raise EntryNotFoundError("p3", p3)

        # Only one entry is expected per p3
        entry = entries[0]
        entry.manifest_commit_id = normalize_text(manifest_commit_id)
        entry.set_if_given("manifest_repo", normalize_optional(repo))
        self._replace(entry)

        self.logger.record_outcome(STAGE_MANIFEST_PATCH, "patched")
        self.logger.info(
            f"Updated manifest commit {entry.manifest_commit_id} for pipeline {p3}",
            row_key=entry.row_key,
            candidates=len(entries),
        )
        return entry
