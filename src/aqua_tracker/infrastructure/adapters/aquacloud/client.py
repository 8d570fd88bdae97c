from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from aqua_tracker.application.ports.request_executor_port import (
    FileUpload,
    RequestExecutorPort,
    ResponseKind,
)
from aqua_tracker.application.ports.tracker_port import TrackerPort
from aqua_tracker.application.use_cases.auth_token_manager import AuthorizedRequester
from aqua_tracker.domain.identifiers import DEFECT, REQUIREMENT, TEST_CASE, ItemIdentifier
from aqua_tracker.domain.model import Credential, Session

logger = logging.getLogger(__name__)


class AquaCloudClient(TrackerPort):
    """Thin wrappers over the Tracker REST endpoints.

    Every call goes through AuthorizedRequester, so a rejected token gets one
    refresh-or-login retry. Non-success outcomes are raised as domain errors.
    """

    def __init__(self, executor: RequestExecutorPort, requester: AuthorizedRequester) -> None:
        self.executor = executor
        self.requester = requester

    async def _call(
        self,
        session: Session,
        path: str,
        method: str,
        body: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
        response_kind: ResponseKind = "json",
        absolute: bool = False,
    ) -> Any:
        url = path if absolute else f"{session.credentials.api_url}{path}"

        async def request(credential: Credential):
            return await self.executor.execute(url, method, credential, body, headers, response_kind)

        outcome = await self.requester.call(session, request)
        return outcome.unwrap()

    # ---------- Items ----------
    async def get_item_details(self, session: Session, item: ItemIdentifier) -> dict[str, Any]:
        logger.info("Fetching details for %s", item)
        path = f"/{item.item_type}/{item.numeric_id}"
        if item.item_type == DEFECT:
            path += "?withEnclosure=true"
        return await self._call(session, path, "GET") or {}

    async def update_item_status(self, session: Session, item: ItemIdentifier, status_id: int | str) -> Any:
        logger.info("Updating status for %s to status id %s", item, status_id)
        body = {"Details": [{"FieldId": "Status", "Value": int(status_id)}]}
        return await self._call(session, f"/{item.item_type}/{item.numeric_id}", "PUT", body)

    async def add_comment(self, session: Session, item: ItemIdentifier, html: str) -> Any:
        logger.info("Adding comment to %s", item)
        return await self._call(session, f"/{item.item_type}/{item.numeric_id}/Post", "POST", {"Html": html})

    async def create_item(
        self,
        session: Session,
        title: str,
        description: str,
        *,
        item_type: str = REQUIREMENT,
        project_id: str | None = None,
        parent_requirement_id: str | None = None,
    ) -> dict[str, Any]:
        """Creates a top-level item in a project, or a sub-item under a parent requirement."""
        if parent_requirement_id:
            logger.info("Creating %s as sub-item of requirement %s", item_type, parent_requirement_id)
            parent = await self.get_item_details(session, ItemIdentifier(parent_requirement_id, REQUIREMENT))
            location = parent.get("Location")
            if not location:
                raise ValueError(f"Could not retrieve location of parent requirement {parent_requirement_id}")
            project, folder = location.get("ProjectId"), location.get("FolderId")
        elif project_id:
            logger.info("Creating %s as top-level item in project %s", item_type, project_id)
            project, folder = project_id, 0
        else:
            raise ValueError("Either parent_requirement_id or project_id must be provided to create an item")

        body = {
            "Location": {"ProjectId": project, "FolderId": folder},
            "Details": [{"FieldId": "Name", "Value": title}],
            "Description": {"Html": description},
        }
        new_item = await self._call(session, f"/{item_type}", "POST", body)
        if not new_item or not new_item.get("Id"):
            raise ValueError("Tracker did not return an id for the created item")

        if parent_requirement_id and item_type == REQUIREMENT:
            logger.info("Linking requirement %s under %s", new_item["Id"], parent_requirement_id)
            await self._call(
                session, f"/Requirement/{parent_requirement_id}/Subrequirement", "POST", {"id": new_item["Id"]}
            )
        return new_item

    async def get_item_hierarchy(self, session: Session, item: ItemIdentifier) -> Any:
        return await self._call(session, f"/{item.item_type}/{item.numeric_id}/SubrequirementTree", "GET")

    # ---------- Project metadata / navigation ----------
    async def get_statuses(self, session: Session, project_id: str, item_type: str = REQUIREMENT) -> list[dict[str, Any]]:
        data = await self._call(session, f"/Project/{project_id}/Meta/{item_type}/Fields/Status", "GET") or {}
        return [{"id": e.get("Id"), "name": e.get("Name")} for e in data.get("Entries", [])]

    async def list_items(
        self,
        session: Session,
        project_id: str,
        *,
        assigned_to: str,
        status: str = "To Do",
        item_type: str = REQUIREMENT,
        max_results: int = 50,
    ) -> list[dict[str, Any]]:
        path = (
            f"/Navigation/ItemList?itemType={item_type}&projectId={project_id}&folderId=0"
            f"&includeSubfolders=true&includeArchived=false&maxResults={max_results}"
        )
        body = {
            "Filter": json.dumps([["AssignedTo", "=", assigned_to], "and", ["Status", "=", status]]),
            "Sorting": json.dumps([["LastModifiedDateTime", "desc"]]),
            "Search": None,
            "TimeZoneOffset": 0,
        }
        data = await self._call(session, path, "POST", body) or {}
        return data.get("Items", [])

    # ---------- Test steps ----------
    async def get_test_steps(self, session: Session, test_case_id: str) -> list[dict[str, Any]]:
        logger.info("Fetching test steps for TestCase %s", test_case_id)
        steps = await self._call(session, f"/{TEST_CASE}/{test_case_id}/TestStep", "GET")
        return steps if isinstance(steps, list) else []

    # ---------- Locking ----------
    async def lock_item(self, session: Session, item: ItemIdentifier, version: int) -> Any:
        logger.info("Locking %s at version %s", item, version)
        return await self._call(session, f"/{item.item_type}/{item.numeric_id}/Lock", "POST", {"Version": version})

    async def unlock_item(self, session: Session, item: ItemIdentifier) -> Any:
        logger.info("Unlocking %s", item)
        return await self._call(session, f"/{item.item_type}/{item.numeric_id}/Lock", "DELETE")

    async def update_locked_item(self, session: Session, item: ItemIdentifier, body: dict[str, Any]) -> Any:
        logger.info("Updating %s under explicit lock", item)
        path = f"/{item.item_type}/{item.numeric_id}?explicitLock=true&applyDefaultValues=false"
        return await self._call(session, path, "PUT", body)

    # ---------- Attachments ----------
    async def list_attachments(self, session: Session, item: ItemIdentifier) -> list[dict[str, Any]]:
        return await self._call(session, f"/{item.item_type}/{item.numeric_id}/Attachment", "GET") or []

    async def download_attachment(self, session: Session, attachment_url: str) -> bytes:
        logger.info("Downloading attachment from %s", attachment_url)
        return await self._call(session, attachment_url, "GET", response_kind="bytes", absolute=True)

    async def upload_attachment(
        self, session: Session, item: ItemIdentifier, filename: str, content: bytes
    ) -> Any:
        logger.info("Uploading attachment %r to %s", filename, item)
        return await self._call(
            session,
            f"/{item.item_type}/{item.numeric_id}/Attachment",
            "POST",
            FileUpload(filename=filename, content=content),
        )
