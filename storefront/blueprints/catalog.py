"""Catalog blueprint: public product and category reads.

Routes:
    GET /api/products            list (optional ?category=&search=)
    GET /api/products/<id>       single product, bumps view_count
    GET /api/categories          active categories
"""

from flask import Blueprint, jsonify, request

from storefront.extensions import db
from storefront.services import catalog_service

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


@catalog_bp.route("/products", methods=["GET"])
def list_products():
    products = catalog_service.get_products(
        category=request.args.get("category"),
        search=(request.args.get("search") or "").strip() or None,
    )
    return jsonify([p.to_dict() for p in products])


@catalog_bp.route("/products/<product_id>", methods=["GET"])
def get_product(product_id):
    try:
        product_id = int(product_id)
    except ValueError:
        return jsonify({"message": "Invalid product ID"}), 400

    product = catalog_service.get_product(product_id)
    if product is None:
        return jsonify({"message": "Product not found"}), 404

    catalog_service.increment_view_count(product)
    db.session.commit()
    return jsonify(product.to_dict())


@catalog_bp.route("/categories", methods=["GET"])
def list_categories():
    return jsonify([c.to_dict() for c in catalog_service.get_categories()])
