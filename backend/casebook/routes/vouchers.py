# Overview: Flask API routes for vouchers; active list, code check and redemption.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import voucher_service
from ..services.voucher_service import VoucherAlreadyRedeemedError, VoucherExpiredError
from ..validation import NotFoundError, ValidationError, parse_int
from casebook.time_utils import to_utc_z


vouchers_bp = Blueprint("vouchers", __name__, url_prefix="/api/vouchers")


@vouchers_bp.get("/active")
@require_auth
def list_active_vouchers_route():
    """Up to 50 unredeemed, unexpired vouchers, newest first."""
    vouchers = voucher_service.list_active_vouchers()
    return jsonify({
        "items": [voucher_service.voucher_details(v) for v in vouchers],
        "count": len(vouchers),
    }), 200


@vouchers_bp.get("/<code>")
@require_auth
def check_voucher_route(code: str):
    """Voucher details and status (active, expired or redeemed)."""
    try:
        return jsonify(voucher_service.check_voucher(code)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@vouchers_bp.post("/redeem")
@require_auth
def redeem_voucher_route():
    """
    Redeem a voucher.

    Request body: {"code": "ABC123XYZ9"} or {"voucher_id": 7}

    Returns:
        200 with the redeemed voucher
        409 when already redeemed (with redeemed_at) or expired (with expiration_date)
    """
    data = request.get_json(silent=True) or {}

    try:
        voucher_id = data.get("voucher_id")
        voucher = voucher_service.redeem_voucher(
            code=data.get("code"),
            voucher_id=parse_int(voucher_id, "voucher_id") if voucher_id not in (None, "") else None,
            principal=g.principal,
        )
        return jsonify(voucher_service.voucher_details(voucher)), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except VoucherAlreadyRedeemedError as e:
        return jsonify({
            "error": "Voucher already redeemed",
            "redeemed_at": to_utc_z(e.redeemed_at),
        }), 409
    except VoucherExpiredError as e:
        return jsonify({
            "error": "Voucher expired",
            "expiration_date": e.expiration_date.isoformat(),
        }), 409
    except Exception:
        current_app.logger.exception("Failed to redeem voucher")
        return jsonify({"error": "Operation failed, please try again"}), 500
