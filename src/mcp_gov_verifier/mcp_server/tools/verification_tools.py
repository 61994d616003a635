"""Verification tools for MCP server.

This module exposes the FSSP debt check, the GIBDD fine check and the MVD
passport validity check as MCP tools, plus a health tool reporting the
state of every gateway.

Tools never raise: failures come back as ``{"success": False, ...}``.
``success`` is True only when the answer was read from the portal, either
just now or from the cache.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from ...config.mcp_logger import logger
from ...connectors.interfaces import VerificationResult, VerificationSource
from ..gateways import get_gateways


def _response(result: VerificationResult) -> Dict[str, Any]:
    response = {"success": result.source != VerificationSource.FALLBACK}
    response.update(result.to_dict())
    response["timestamp"] = datetime.now().isoformat()
    return response


def _error_response(service: str, error: Exception) -> Dict[str, Any]:
    return {
        "success": False,
        "service": service,
        "source": VerificationSource.FALLBACK.value,
        "error": f"Error during verification: {str(error)}",
        "timestamp": datetime.now().isoformat()
    }


async def _check(service: str, query: Dict[str, Any], demo: bool) -> Dict[str, Any]:
    try:
        gateway = get_gateways()[service]
        if demo:
            return _response(gateway.demo_result())

        logger.info("verification_requested", service=service)
        result = await gateway.check(query)

        logger.info(
            "verification_result",
            service=service,
            source=result.source.value,
            verdict=result.verdict
        )
        return _response(result)

    except Exception as e:
        logger.error("verification_tool_error", service=service, error=str(e), exc_info=True)
        return _error_response(service, e)


def register_verification_tools(mcp: FastMCP):
    """Register verification tools with the MCP server."""

    @mcp.tool()
    async def fssp_check_debt(
        last_name: str,
        first_name: str,
        birth_date: str,
        region: int,
        middle_name: Optional[str] = None,
        demo: bool = False
    ) -> Dict[str, Any]:
        """Check a private person for debts in the FSSP enforcement proceedings database.

        Args:
            last_name: Family name
            first_name: Given name
            birth_date: Birth date in YYYY-MM-DD or DD.MM.YYYY format
            region: Region code (1-99), e.g. 77 for Moscow
            middle_name: Patronymic, if any
            demo: Return fixed sample data without contacting the portal

        Returns:
            Dictionary with has_debt, total_amount, exec_proceedings and result metadata
        """
        query = {
            "last_name": last_name,
            "first_name": first_name,
            "middle_name": middle_name,
            "birth_date": birth_date,
            "region": region,
        }
        return await _check("fssp", query, demo)

    @mcp.tool()
    async def gibdd_check_fines(
        check_type: str,
        reg_number: Optional[str] = None,
        sts_number: Optional[str] = None,
        license_number: Optional[str] = None,
        issue_date: Optional[str] = None,
        demo: bool = False
    ) -> Dict[str, Any]:
        """Check for unpaid traffic fines.

        Args:
            check_type: "sts" to search by vehicle, "license" to search by driver's license
            reg_number: Vehicle plate number (sts checks)
            sts_number: Vehicle registration certificate number (sts checks)
            license_number: Driver's license number (license checks)
            issue_date: Driver's license issue date, optional (license checks)
            demo: Return fixed sample data without contacting the portal

        Returns:
            Dictionary with has_fines, total_amount, fines and result metadata
        """
        query = {
            "check_type": check_type,
            "reg_number": reg_number,
            "sts_number": sts_number,
            "license_number": license_number,
            "issue_date": issue_date,
        }
        return await _check("gibdd", query, demo)

    @mcp.tool()
    async def passport_check_validity(series: str, number: str, demo: bool = False) -> Dict[str, Any]:
        """Check a Russian passport against the MVD register of invalid passports.

        Args:
            series: Passport series (4 digits)
            number: Passport number (6 digits)
            demo: Return fixed sample data without contacting the portal

        Returns:
            Dictionary with status, is_valid and result metadata
        """
        return await _check("passport", {"series": series, "number": number}, demo)

    @mcp.tool()
    async def verification_health() -> Dict[str, Any]:
        """Report whether each verification service is enabled and its circuit breaker state.

        Returns:
            Dictionary with one entry per service
        """
        try:
            gateways = get_gateways()
            return {
                "success": True,
                "services": {name: gateway.snapshot() for name, gateway in gateways.items()},
                "timestamp": datetime.now().isoformat()
            }
        except Exception as e:
            logger.error("verification_health_error", error=str(e), exc_info=True)
            return {
                "success": False,
                "message": f"Error reading service health: {str(e)}",
                "timestamp": datetime.now().isoformat()
            }
