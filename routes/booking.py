import json

from flask import Blueprint, request, jsonify

from services import get_booking_service

booking_bp = Blueprint("booking", __name__, url_prefix="/api")


def _money(value):
    return float(value) if value is not None else None


def _booking_json(b):
    return {
        "id": b.id,
        "firstName": b.first_name,
        "lastName": b.last_name,
        "email": b.email,
        "carModel": b.car_model,
        "washType": {"name": b.wash_type_name, "price": _money(b.wash_type_price)} if b.wash_type_name else None,
        "additionalServices": [
            {"name": s["name"], "price": _money(s.get("price"))}
            for s in json.loads(b.additional_services_json or "[]")
        ],
        "date": b.date.isoformat(),
        "time": b.time,
        "serviceLocation": b.service_location,
        "address": b.address,
        "subscription": b.subscription,
        "totalPrice": _money(b.total_price),
        "paymentStatus": b.payment_status,
        "createdAt": b.created_at.isoformat(),
    }


# ---------- CUSTOMERS: view free slots ----------
@booking_bp.get("/available-slots")
def available_slots():
    slots = get_booking_service().available_slots(request.args.get("date"))
    return jsonify(slots), 200


# ---------- CUSTOMERS: book + start payment ----------
@booking_bp.post("/book")
def create_booking():
    data = request.get_json(silent=True) or {}
    result = get_booking_service().create_booking(data)
    return jsonify(result), 201


# ---------- CUSTOMERS: view my bookings ----------
@booking_bp.get("/my-bookings")
def my_bookings():
    rows = get_booking_service().list_customer_bookings(request.args.get("email"))
    return jsonify([_booking_json(b) for b in rows]), 200


@booking_bp.get("/bookings/<int:booking_id>")
def get_booking(booking_id: int):
    booking = get_booking_service().get_booking(booking_id)
    return jsonify(_booking_json(booking)), 200


# ---------- CUSTOMERS: cancel booking (policy window) ----------
@booking_bp.post("/bookings/<int:booking_id>/cancel")
def cancel_booking(booking_id: int):
    get_booking_service().cancel_booking(booking_id)
    return jsonify(message="Cancelled"), 200


# ---------- OPERATOR: list all bookings ----------
@booking_bp.get("/all-bookings")
def list_all_bookings():
    rows = get_booking_service().list_bookings(
        day=request.args.get("date"),
        status=request.args.get("status"),
    )
    return jsonify([_booking_json(b) for b in rows]), 200
