# helpers/bulk_copy.py
"""
Replay one location's custom values / custom fields onto other locations.

Strictly sequential. An item that fails to copy is recorded and skipped;
it never stops the remaining items or targets. Nothing is rolled back.
"""
import logging
from typing import Any, Dict, List, Optional

from helpers.errors import AppError
from helpers.ghl_client import GHLClient

logger = logging.getLogger("bulk")


def _value_payload(cv: Dict[str, Any]) -> Dict[str, Any]:
    return {"name": cv.get("name"), "value": cv.get("value")}


def _field_payload(cf: Dict[str, Any]) -> Dict[str, Any]:
    data = {
        "name": cf.get("name"),
        "dataType": cf.get("dataType"),
        "position": cf.get("position"),
        "picklistOptions": cf.get("picklistOptions"),
    }
    if cf.get("placeholder"):
        data["placeholder"] = cf["placeholder"]
    return data


async def copy_custom_values(
    client: GHLClient,
    source_location_id: str,
    target_location_ids: List[str],
    company_id: Optional[str] = None,
) -> Dict[str, Any]:
    source_values = await client.list_custom_values(company_id or source_location_id, source_location_id)

    results = []
    for target_id in target_location_ids:
        location_results = []
        for cv in source_values:
            try:
                created = await client.create_custom_value(company_id or target_id, target_id, _value_payload(cv))
                location_results.append({"success": True, "value": created})
            except AppError as e:
                logger.warning("copy value %r -> %s failed: %s", cv.get("name"), target_id, e.message)
                location_results.append({"success": False, "error": e.message, "valueName": cv.get("name")})
        results.append({"locationId": target_id, "results": location_results})

    logger.info("bulk values copied from=%s targets=%d items=%d", source_location_id, len(target_location_ids), len(source_values))
    return {"success": True, "results": results}


async def copy_custom_fields(
    client: GHLClient,
    source_location_id: str,
    target_location_ids: List[str],
    company_id: Optional[str] = None,
) -> Dict[str, Any]:
    source_fields = await client.list_custom_fields(company_id or source_location_id, source_location_id)

    results = []
    for target_id in target_location_ids:
        location_results = []
        for cf in source_fields:
            try:
                created = await client.create_custom_field(company_id or target_id, target_id, _field_payload(cf))
                location_results.append({"success": True, "field": created})
            except AppError as e:
                logger.warning("copy field %r -> %s failed: %s", cf.get("name"), target_id, e.message)
                location_results.append({"success": False, "error": e.message, "fieldName": cf.get("name")})
        results.append({"locationId": target_id, "results": location_results})

    logger.info("bulk fields copied from=%s targets=%d items=%d", source_location_id, len(target_location_ids), len(source_fields))
    return {"success": True, "results": results}
