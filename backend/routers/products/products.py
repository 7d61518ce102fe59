from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from config import get_db
from models import SupplierProfile, Product, utcnow
from services.geo import GeoProximityResolver, SqlAlchemyProximityRepository, NearbyProduct
from utils.exceptions import ProductNotFound, SupplierNotFound
from utils.response_helpers import (
    parse_uuid, safe_model_validate, product_to_dict, supplier_profile_to_dict, reject_null_columns
)
from routers.users.helpers import user_helpers
from .schemas import (
    ProductCreate, ProductUpdate, ProductResponse, ProductWithSupplierResponse,
    ProductListResponse, ProductImageUpload
)
from typing import Optional, List
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["Products"])


def _to_list_response(entries: List[NearbyProduct]) -> ProductListResponse:
    products = []
    for entry in entries:
        product_dict = product_to_dict(entry.product)
        product_dict['supplier'] = supplier_profile_to_dict(entry.supplier, entry.user)
        product_dict['distance_km'] = entry.distance_km
        products.append(safe_model_validate(ProductWithSupplierResponse, product_dict))
    return ProductListResponse(products=products, total=len(products))


async def get_product_or_404(product_id: str, db: AsyncSession) -> Product:
    product_uuid = parse_uuid(product_id)
    product = await db.get(Product, product_uuid) if product_uuid else None
    if not product:
        raise ProductNotFound()
    return product


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    db: AsyncSession = Depends(get_db)
):
    """List a new product for a supplier"""
    try:
        supplier_uuid = parse_uuid(product_data.supplier_id)
        supplier = await db.get(SupplierProfile, supplier_uuid) if supplier_uuid else None
        if not supplier:
            raise SupplierNotFound()

        product = Product(
            supplier_profile_id=supplier.id,
            **product_data.model_dump(exclude={"supplier_id"})
        )
        db.add(product)
        await db.commit()
        await db.refresh(product)
        logger.info(f"Supplier {supplier.id} listed product {product.id} ({product.name})")

        return safe_model_validate(ProductResponse, product_to_dict(product))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating product: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create product"
        )


@router.get("/search", response_model=ProductListResponse)
async def search_products(
    query: Optional[str] = Query(None, description="Case-insensitive match on product name"),
    lat: Optional[float] = Query(None),
    lon: Optional[float] = Query(None),
    radius: Optional[float] = Query(None, description="Only with lat/lon"),
    db: AsyncSession = Depends(get_db)
):
    """
    Search available products from online suppliers.
    Closest first when a location is given, otherwise cheapest first.
    """
    try:
        resolver = GeoProximityResolver(SqlAlchemyProximityRepository(db))
        entries = await resolver.search_products(query, lat, lon, radius)
        return _to_list_response(entries)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error searching products: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to search products"
        )


@router.get("/category/{category}", response_model=ProductListResponse)
async def get_products_by_category(
    category: str,
    lat: Optional[float] = Query(None),
    lon: Optional[float] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """Available products in a category"""
    try:
        resolver = GeoProximityResolver(SqlAlchemyProximityRepository(db))
        entries = await resolver.products_by_category(category, lat, lon)
        return _to_list_response(entries)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting products for category {category}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get products"
        )


@router.get("/supplier/{supplier_id}", response_model=List[ProductResponse])
async def get_supplier_products(
    supplier_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Full catalogue of a supplier, including unavailable items"""
    try:
        supplier_uuid = parse_uuid(supplier_id)
        supplier = await db.get(SupplierProfile, supplier_uuid) if supplier_uuid else None
        if not supplier:
            raise SupplierNotFound()

        result = await db.execute(
            select(Product)
            .where(Product.supplier_profile_id == supplier.id)
            .order_by(Product.name.asc(), Product.created_at.asc())
        )
        return [safe_model_validate(ProductResponse, product_to_dict(p)) for p in result.scalars().all()]

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting products for supplier {supplier_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get supplier products"
        )


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    db: AsyncSession = Depends(get_db)
):
    try:
        product = await get_product_or_404(product_id, db)
        return safe_model_validate(ProductResponse, product_to_dict(product))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting product {product_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get product"
        )


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    product_update: ProductUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Adjust price, stock or availability"""
    try:
        product = await get_product_or_404(product_id, db)

        update_data = product_update.model_dump(exclude_unset=True)
        reject_null_columns(Product, update_data)
        for field, value in update_data.items():
            setattr(product, field, value)
        product.updated_at = utcnow()

        await db.commit()
        await db.refresh(product)
        logger.info(f"Updated product {product.id}: {', '.join(update_data) or 'no changes'}")

        return safe_model_validate(ProductResponse, product_to_dict(product))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating product {product_id}: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update product"
        )


@router.post("/{product_id}/image", response_model=ProductImageUpload)
async def upload_product_image(
    product_id: str,
    file: UploadFile = File(..., description="Product image file (JPEG, PNG, GIF, or WebP, max 5MB)"),
    db: AsyncSession = Depends(get_db)
):
    """Upload a product photo and replace the previous one"""
    try:
        product = await get_product_or_404(product_id, db)

        image_url = await user_helpers.upload_image("products", str(product.id), file)

        if product.image_url:
            user_helpers.delete_image(product.image_url)
        product.image_url = image_url
        product.updated_at = utcnow()
        await db.commit()

        return ProductImageUpload(
            image_url=image_url,
            message="Product image uploaded successfully"
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error uploading image for product {product_id}: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload product image"
        )
