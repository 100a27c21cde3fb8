"""Coupons blueprint - coupon management for the back office."""
from flask import Blueprint, jsonify
from restopos.database import get_session
from restopos.utils.request_helpers import json_body
from restopos.services.coupon_service import CouponService

coupons_bp = Blueprint('coupons', __name__, url_prefix='/coupons')


@coupons_bp.route('', methods=['GET'])
def list_coupons():
    coupons = CouponService(get_session()).list_coupons()
    return jsonify([c.to_dict() for c in coupons])


@coupons_bp.route('', methods=['POST'])
def create_coupon():
    data = json_body()
    coupon = CouponService(get_session()).create_coupon(data)
    return jsonify(coupon.to_dict()), 201


@coupons_bp.route('/<int:coupon_id>', methods=['PUT'])
def update_coupon(coupon_id):
    data = json_body()
    coupon = CouponService(get_session()).update_coupon(coupon_id, data)
    return jsonify(coupon.to_dict())


@coupons_bp.route('/<int:coupon_id>', methods=['DELETE'])
def delete_coupon(coupon_id):
    CouponService(get_session()).delete_coupon(coupon_id)
    return jsonify({'message': 'Coupon deleted successfully'})
