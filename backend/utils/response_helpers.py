"""
Response helper utilities for handling UUID conversions and model validation
"""
from typing import Any, Dict, List, Optional
import uuid
from pydantic import BaseModel
from utils.exceptions import ValidationError


def parse_uuid(value: Any) -> Optional[uuid.UUID]:
    """
    Parse a UUID from a string or UUID, returning None when it is malformed
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def convert_uuids_to_strings(obj: Any) -> Any:
    """
    Recursively convert UUID objects to strings in any data structure
    """
    if isinstance(obj, uuid.UUID):
        return str(obj)
    elif isinstance(obj, dict):
        return {key: convert_uuids_to_strings(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [convert_uuids_to_strings(item) for item in obj]
    elif hasattr(obj, '__table__'):
        # SQLAlchemy models: only column attributes, so unloaded relationships are never touched
        return {
            column.key: convert_uuids_to_strings(getattr(obj, column.key))
            for column in obj.__table__.columns
        }
    else:
        return obj


def safe_model_validate(model_class: BaseModel, data: Any) -> BaseModel:
    """
    Safely validate a model by converting UUIDs to strings first
    """
    clean_data = convert_uuids_to_strings(data)

    # Remove SQLAlchemy internal keys if present
    if isinstance(clean_data, dict):
        clean_data = {k: v for k, v in clean_data.items() if not k.startswith('_')}

    return model_class.model_validate(clean_data)


def reject_null_columns(model_class: Any, update_data: Dict[str, Any]) -> None:
    """
    Raise ValidationError for explicit nulls sent for NOT NULL columns of a partial update
    """
    columns = model_class.__table__.columns
    errors = [
        {"field": field, "message": f"{field} cannot be null"}
        for field, value in update_data.items()
        if value is None and field in columns and not columns[field].nullable
    ]
    if errors:
        raise ValidationError("Fields cannot be null", errors=errors)


def safe_model_validate_list(model_class: BaseModel, data_list: List[Any]) -> List[BaseModel]:
    """
    Safely validate a list of models by converting UUIDs to strings first
    """
    return [safe_model_validate(model_class, item) for item in data_list]


# Specific helper functions for common models
def user_profile_to_dict(user_profile) -> Dict[str, Any]:
    """Convert UserProfile model to dict with string UUIDs"""
    return {
        'id': str(user_profile.id),
        'phone': user_profile.phone,
        'email': user_profile.email,
        'name': user_profile.name,
        'role': user_profile.role,
        'latitude': user_profile.latitude,
        'longitude': user_profile.longitude,
        'address': user_profile.address,
        'is_verified': user_profile.is_verified,
        'rating': user_profile.rating,
        'total_reviews': user_profile.total_reviews,
        'created_at': user_profile.created_at,
        'updated_at': user_profile.updated_at
    }


def vendor_profile_to_dict(vendor_profile, user_profile=None) -> Dict[str, Any]:
    """Convert VendorProfile model to dict with string UUIDs"""
    data = {
        'id': str(vendor_profile.id),
        'user_profile_id': str(vendor_profile.user_profile_id),
        'stall_name': vendor_profile.stall_name,
        'food_type': vendor_profile.food_type,
        'daily_budget': vendor_profile.daily_budget,
        'created_at': vendor_profile.created_at,
        'updated_at': vendor_profile.updated_at
    }
    if user_profile is not None:
        data['user'] = user_profile_to_dict(user_profile)
    return data


def supplier_profile_to_dict(supplier_profile, user_profile=None) -> Dict[str, Any]:
    """Convert SupplierProfile model to dict with string UUIDs"""
    data = {
        'id': str(supplier_profile.id),
        'user_profile_id': str(supplier_profile.user_profile_id),
        'business_name': supplier_profile.business_name,
        'business_type': supplier_profile.business_type,
        'delivery_radius_km': supplier_profile.delivery_radius_km,
        'min_order_amount': supplier_profile.min_order_amount,
        'avg_delivery_time_minutes': supplier_profile.avg_delivery_time_minutes,
        'is_online': supplier_profile.is_online,
        'created_at': supplier_profile.created_at,
        'updated_at': supplier_profile.updated_at
    }
    if user_profile is not None:
        data['user'] = user_profile_to_dict(user_profile)
    return data


def product_to_dict(product) -> Dict[str, Any]:
    """Convert Product model to dict with string UUIDs"""
    return {
        'id': str(product.id),
        'supplier_profile_id': str(product.supplier_profile_id),
        'name': product.name,
        'category': product.category,
        'unit': product.unit,
        'price_per_unit': product.price_per_unit,
        'minimum_order_quantity': product.minimum_order_quantity,
        'stock_quantity': product.stock_quantity,
        'is_available': product.is_available,
        'quality_grade': product.quality_grade,
        'expiry_date': product.expiry_date,
        'image_url': product.image_url,
        'created_at': product.created_at,
        'updated_at': product.updated_at
    }


def user_with_profiles_to_dict(user_profile) -> Dict[str, Any]:
    """User plus whichever role profile is loaded on it"""
    vendor = user_profile.vendor_profile
    supplier = user_profile.supplier_profile
    return {
        'user': user_profile_to_dict(user_profile),
        'vendor_profile': vendor_profile_to_dict(vendor) if vendor else None,
        'supplier_profile': supplier_profile_to_dict(supplier) if supplier else None
    }
