"""
Store self-test.

Writes a stage 1 and stage 2 report for a reserved service, then finds and
deletes every entry for that service. Passing means the configured store
accepts the queries and writes the tracker needs.
"""

import random

from .errors import DeployTraceError, SelfTestError
from .tracker import DeploymentTracker

SELF_TEST_SERVICE = "deploytrace-self-test"
SELF_TEST_IMAGE_TAG = "deploytrace-test-123"
SELF_TEST_ENV = "DEPLOYTRACE-TEST"


def write_self_test_data(tracker: DeploymentTracker) -> str:
    """
    Record self-test source build and HLD update.

    Returns:
        The build id used for both pipeline ids
    """
    build_id = str(random.randint(0, 999))
    commit_id = "6nbe" + build_id

    tracker.logger.info("Adding source build self-test data...")
    tracker.record_source_build(build_id, SELF_TEST_IMAGE_TAG, SELF_TEST_SERVICE, commit_id)

    tracker.logger.info("Adding HLD update self-test data...")
    tracker.record_config_update(build_id, SELF_TEST_IMAGE_TAG, commit_id, SELF_TEST_ENV)
    return build_id


def delete_self_test_data(tracker: DeploymentTracker, build_id: str) -> bool:
    """
    Delete all self-test entries in the tracker's partition.

    Returns:
        True if an entry written for build_id was among them
    """
    entries = tracker._call_store(
        "query:service",
        tracker.store.query,
        tracker.partition_key,
        "service",
        SELF_TEST_SERVICE,
    )

    found = False
    for entry in entries:
        if entry.p1 == build_id:
            found = True
        tracker._call_store("delete", tracker.store.delete, entry)
    return found


def run_self_test(tracker: DeploymentTracker) -> None:
    """
    Run the self-test against the tracker's store.

    Raises:
        SelfTestError: if the written data could not be found again, or
            any store operation failed
    """
    logger = tracker.logger
    status = "Finished running self-test. Deployment tracking self-test status: "
    try:
        logger.info("Writing self-test data...")
        build_id = write_self_test_data(tracker)

        logger.info("Deleting self-test data...")
        verified = delete_self_test_data(tracker, build_id)
    except DeployTraceError as e:
        logger.error(status + "FAILED.", error=str(e))
        raise SelfTestError(f"Self-test could not complete: {e}") from e

    if not verified:
        logger.error(status + "FAILED. Please try again.", build_id=build_id)
        raise SelfTestError(f"Self-test entry for build {build_id} was not found")
    logger.info(status + "SUCCEEDED.", build_id=build_id)
