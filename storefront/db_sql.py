"""
SQLAlchemy-backed implementation of the catalog DbClient.
"""

from __future__ import annotations

import time
from typing import Iterable, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    and_,
    case,
    cast,
    create_engine,
    delete,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from storefront.catalog_query import (
    BOOLEAN_LABELS,
    NUMERIC_PATTERN,
    ProductFilters,
    ProductQuery,
    parse_range,
)
from storefront.db import (
    AdminUserRecord,
    AssetRecord,
    CartItemRecord,
    CategoryRecord,
    ProductRecord,
    SubcategoryRecord,
)

JsonType = JSON().with_variant(JSONB(), "postgresql")


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    # Row conversion

    @staticmethod
    def _to_category(row: "CategoryRow") -> CategoryRecord:
        return CategoryRecord(
            id=row.id,
            name=row.name,
            slug=row.slug,
            image_url=row.image_url,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_subcategory(row: "SubcategoryRow") -> SubcategoryRecord:
        return SubcategoryRecord(
            id=row.id,
            category_id=row.category_id,
            name=row.name,
            slug=row.slug,
            filter_config=list(row.filter_config or []),
            display_order=row.display_order,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_product(row: "ProductRow") -> ProductRecord:
        return ProductRecord(
            id=row.id,
            category_id=row.category_id,
            subcategory_id=row.subcategory_id,
            name=row.name,
            slug=row.slug,
            description=row.description,
            price=row.price,
            stock=row.stock,
            brand=row.brand,
            attributes=dict(row.attributes or {}),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_asset(row: "AssetRow") -> AssetRecord:
        return AssetRecord(
            id=row.id,
            product_id=row.product_id,
            kind=row.kind,
            section=row.section,
            storage_bucket=row.storage_bucket,
            storage_path=row.storage_path,
            title=row.title,
            alt=row.alt,
            sort_order=row.sort_order,
            is_primary=row.is_primary,
            is_secondary=row.is_secondary,
            poster_storage_path=row.poster_storage_path,
            duration_seconds=row.duration_seconds,
            filename=row.filename,
            mime_type=row.mime_type,
            file_size_bytes=row.file_size_bytes,
            is_public=row.is_public,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_cart_item(row: "CartItemRow") -> CartItemRecord:
        return CartItemRecord(
            cart_id=row.cart_id,
            product_id=row.product_id,
            name=row.name,
            slug=row.slug,
            quantity=row.quantity,
            brand=row.brand,
            description=row.description,
            image_url=row.image_url,
            added_at=row.added_at,
        )

    def _update_row(self, row_cls, row_id: int, fields: dict, convert):
        with self.Session() as session:
            row = session.get(row_cls, row_id)
            if not row:
                return None
            for key, value in fields.items():
                setattr(row, key, value)
            if hasattr(row, "updated_at"):
                row.updated_at = time.time()
            session.commit()
            session.refresh(row)
            return convert(row)

    def _delete_row(self, row_cls, row_id: int) -> bool:
        with self.Session() as session:
            row = session.get(row_cls, row_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def _count(self, row_cls, *criteria) -> int:
        with self.Session() as session:
            stmt = select(func.count()).select_from(row_cls)
            if criteria:
                stmt = stmt.where(*criteria)
            return session.execute(stmt).scalar_one()

    # Categories

    def list_categories(self) -> list[CategoryRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(CategoryRow).order_by(CategoryRow.name.asc(), CategoryRow.id.asc())
            ).scalars()
            return [self._to_category(row) for row in rows]

    def get_category(self, category_id: int) -> Optional[CategoryRecord]:
        with self.Session() as session:
            row = session.get(CategoryRow, category_id)
            return self._to_category(row) if row else None

    def get_category_by_slug(self, slug: str) -> Optional[CategoryRecord]:
        with self.Session() as session:
            row = session.execute(
                select(CategoryRow).where(CategoryRow.slug == slug)
            ).scalar_one_or_none()
            return self._to_category(row) if row else None

    def create_category(
        self, name: str, slug: str, image_url: Optional[str] = None
    ) -> CategoryRecord:
        with self.Session() as session:
            row = CategoryRow(
                name=name, slug=slug, image_url=image_url, created_at=time.time()
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_category(row)

    def update_category(
        self, category_id: int, fields: dict
    ) -> Optional[CategoryRecord]:
        return self._update_row(CategoryRow, category_id, fields, self._to_category)

    def delete_category(self, category_id: int) -> bool:
        return self._delete_row(CategoryRow, category_id)

    def count_categories(self) -> int:
        return self._count(CategoryRow)

    # Subcategories

    def list_subcategories(
        self, category_id: Optional[int] = None
    ) -> list[SubcategoryRecord]:
        with self.Session() as session:
            stmt = select(SubcategoryRow).order_by(
                SubcategoryRow.display_order.asc(),
                SubcategoryRow.name.asc(),
                SubcategoryRow.id.asc(),
            )
            if category_id is not None:
                stmt = stmt.where(SubcategoryRow.category_id == category_id)
            return [self._to_subcategory(row) for row in session.execute(stmt).scalars()]

    def get_subcategory(self, subcategory_id: int) -> Optional[SubcategoryRecord]:
        with self.Session() as session:
            row = session.get(SubcategoryRow, subcategory_id)
            return self._to_subcategory(row) if row else None

    def get_subcategory_by_slug(self, slug: str) -> Optional[SubcategoryRecord]:
        with self.Session() as session:
            row = session.execute(
                select(SubcategoryRow).where(SubcategoryRow.slug == slug)
            ).scalar_one_or_none()
            return self._to_subcategory(row) if row else None

    def create_subcategory(
        self,
        category_id: int,
        name: str,
        slug: str,
        display_order: int = 0,
        filter_config: Optional[list] = None,
    ) -> SubcategoryRecord:
        with self.Session() as session:
            row = SubcategoryRow(
                category_id=category_id,
                name=name,
                slug=slug,
                display_order=display_order,
                filter_config=list(filter_config or []),
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_subcategory(row)

    def update_subcategory(
        self, subcategory_id: int, fields: dict
    ) -> Optional[SubcategoryRecord]:
        return self._update_row(
            SubcategoryRow, subcategory_id, fields, self._to_subcategory
        )

    def delete_subcategory(self, subcategory_id: int) -> bool:
        return self._delete_row(SubcategoryRow, subcategory_id)

    def count_subcategories(self) -> int:
        return self._count(SubcategoryRow)

    # Products

    def get_product(self, product_id: int) -> Optional[ProductRecord]:
        with self.Session() as session:
            row = session.get(ProductRow, product_id)
            return self._to_product(row) if row else None

    def get_product_by_slug(self, slug: str) -> Optional[ProductRecord]:
        with self.Session() as session:
            row = session.execute(
                select(ProductRow).where(ProductRow.slug == slug)
            ).scalar_one_or_none()
            return self._to_product(row) if row else None

    def create_product(self, fields: dict) -> ProductRecord:
        now = time.time()
        with self.Session() as session:
            row = ProductRow(created_at=now, updated_at=now, **fields)
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_product(row)

    def update_product(
        self, product_id: int, fields: dict
    ) -> Optional[ProductRecord]:
        return self._update_row(ProductRow, product_id, fields, self._to_product)

    def delete_product(self, product_id: int) -> bool:
        with self.Session() as session:
            row = session.get(ProductRow, product_id)
            if not row:
                return False
            session.execute(delete(AssetRow).where(AssetRow.product_id == product_id))
            session.delete(row)
            session.commit()
            return True

    def _attribute_kind(self, key: str):
        """JSON type of one attribute, as (is_string, is_number) SQL conditions."""
        if self.engine.dialect.name == "postgresql":
            kind = func.jsonb_typeof(ProductRow.attributes[key])
            return kind == "string", kind == "number"
        # SQLite reports booleans as 'true'/'false' and numbers as 'integer'/'real'.
        kind = func.json_type(ProductRow.attributes, f'$."{key}"')
        return kind == "text", kind.in_(["integer", "real"])

    def _attribute_clause(self, key: str, value):
        text = ProductRow.attributes[key].as_string()
        is_string, is_number = self._attribute_kind(key)
        if isinstance(value, list):
            return and_(is_string, text.in_(value)) if value else None
        if not value:
            return None
        bounds = parse_range(value)
        if bounds is not None:
            number = case(
                (is_number, cast(text, Float)),
                (
                    is_string,
                    case(
                        (text.regexp_match(NUMERIC_PATTERN.pattern), cast(text, Float)),
                        else_=None,
                    ),
                ),
                else_=None,
            )
            return number.between(bounds[0], bounds[1])
        if value in BOOLEAN_LABELS:
            return and_(is_string, text.in_([BOOLEAN_LABELS[value], value]))
        return and_(is_string, text == value)

    def _filter_clauses(self, query: ProductQuery) -> list:
        clauses = []
        if query.category_id is not None:
            clauses.append(ProductRow.category_id == query.category_id)
        if query.subcategory_id is not None:
            clauses.append(ProductRow.subcategory_id == query.subcategory_id)
        if query.search:
            pattern = f"%{query.search}%"
            clauses.append(
                or_(
                    ProductRow.name.ilike(pattern),
                    ProductRow.slug.ilike(pattern),
                    ProductRow.brand.ilike(pattern),
                )
            )
        filters: ProductFilters = query.filters
        if filters.min_price is not None:
            clauses.append(ProductRow.price >= filters.min_price)
        if filters.max_price is not None:
            clauses.append(ProductRow.price <= filters.max_price)
        if filters.in_stock:
            clauses.append(ProductRow.stock > 0)
        for key, value in filters.attribute_filters.items():
            clause = self._attribute_clause(key, value)
            if clause is not None:
                clauses.append(clause)
        return clauses

    @staticmethod
    def _order_by(sort: Optional[str]) -> list:
        if sort == "price_asc":
            return [ProductRow.price.is_(None), ProductRow.price.asc(), ProductRow.id.asc()]
        if sort == "price_desc":
            return [ProductRow.price.is_(None), ProductRow.price.desc(), ProductRow.id.asc()]
        if sort == "name_asc":
            return [ProductRow.name.asc(), ProductRow.id.asc()]
        if sort == "name_desc":
            return [ProductRow.name.desc(), ProductRow.id.asc()]
        if sort == "oldest":
            return [ProductRow.created_at.asc(), ProductRow.id.asc()]
        return [ProductRow.created_at.desc(), ProductRow.id.desc()]

    def search_products(
        self, query: ProductQuery
    ) -> tuple[list[ProductRecord], int]:
        clauses = self._filter_clauses(query)
        condition = and_(*clauses) if clauses else None
        with self.Session() as session:
            count_stmt = select(func.count()).select_from(ProductRow)
            stmt = select(ProductRow).order_by(*self._order_by(query.filters.sort))
            if condition is not None:
                count_stmt = count_stmt.where(condition)
                stmt = stmt.where(condition)
            total = session.execute(count_stmt).scalar_one()
            stmt = stmt.offset(query.offset)
            if query.limit is not None:
                stmt = stmt.limit(query.limit)
            rows = session.execute(stmt).scalars()
            return [self._to_product(row) for row in rows], total

    def count_products(
        self,
        *,
        category_id: Optional[int] = None,
        subcategory_id: Optional[int] = None,
    ) -> int:
        criteria = []
        if category_id is not None:
            criteria.append(ProductRow.category_id == category_id)
        if subcategory_id is not None:
            criteria.append(ProductRow.subcategory_id == subcategory_id)
        return self._count(ProductRow, *criteria)

    def count_products_by_category(self) -> dict[int, int]:
        with self.Session() as session:
            rows = session.execute(
                select(ProductRow.category_id, func.count())
                .group_by(ProductRow.category_id)
                .order_by(ProductRow.category_id)
            ).all()
            return {category_id: count for category_id, count in rows}

    # Assets

    def list_assets(
        self,
        product_ids: Iterable[int],
        *,
        section: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> list[AssetRecord]:
        ids = list(product_ids)
        if not ids:
            return []
        with self.Session() as session:
            stmt = (
                select(AssetRow)
                .where(AssetRow.product_id.in_(ids))
                .order_by(
                    AssetRow.is_primary.desc(),
                    AssetRow.sort_order.asc(),
                    AssetRow.id.asc(),
                )
            )
            if section is not None:
                stmt = stmt.where(AssetRow.section == section)
            if kind is not None:
                stmt = stmt.where(AssetRow.kind == kind)
            return [self._to_asset(row) for row in session.execute(stmt).scalars()]

    def get_asset(self, asset_id: int) -> Optional[AssetRecord]:
        with self.Session() as session:
            row = session.get(AssetRow, asset_id)
            return self._to_asset(row) if row else None

    def create_asset(self, fields: dict) -> AssetRecord:
        with self.Session() as session:
            row = AssetRow(created_at=time.time(), **fields)
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_asset(row)

    def update_asset(self, asset_id: int, fields: dict) -> Optional[AssetRecord]:
        return self._update_row(AssetRow, asset_id, fields, self._to_asset)

    def delete_asset(self, asset_id: int) -> bool:
        return self._delete_row(AssetRow, asset_id)

    def clear_asset_flag(self, product_id: int, flag: str) -> None:
        column = getattr(AssetRow, flag)
        with self.Session() as session:
            session.execute(
                update(AssetRow)
                .where(
                    AssetRow.product_id == product_id,
                    AssetRow.section == "gallery",
                )
                .values({column: False})
            )
            session.commit()

    def max_asset_sort_order(self, product_id: int, section: str) -> int:
        with self.Session() as session:
            value = session.execute(
                select(func.max(AssetRow.sort_order)).where(
                    AssetRow.product_id == product_id,
                    AssetRow.section == section,
                )
            ).scalar_one_or_none()
            return value or 0

    def count_assets(self) -> int:
        return self._count(AssetRow)

    # Cart

    def list_cart_items(self, cart_id: str) -> list[CartItemRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(CartItemRow)
                .where(CartItemRow.cart_id == cart_id)
                .order_by(CartItemRow.added_at.asc(), CartItemRow.product_id.asc())
            ).scalars()
            return [self._to_cart_item(row) for row in rows]

    def get_cart_item(
        self, cart_id: str, product_id: int
    ) -> Optional[CartItemRecord]:
        with self.Session() as session:
            row = session.get(CartItemRow, (cart_id, product_id))
            return self._to_cart_item(row) if row else None

    def save_cart_item(self, item: CartItemRecord) -> CartItemRecord:
        with self.Session() as session:
            row = session.get(CartItemRow, (item.cart_id, item.product_id))
            if row is None:
                row = CartItemRow(cart_id=item.cart_id, product_id=item.product_id)
                session.add(row)
            row.name = item.name
            row.slug = item.slug
            row.quantity = item.quantity
            row.brand = item.brand
            row.description = item.description
            row.image_url = item.image_url
            row.added_at = item.added_at
            session.commit()
            return item

    def delete_cart_item(self, cart_id: str, product_id: int) -> bool:
        with self.Session() as session:
            row = session.get(CartItemRow, (cart_id, product_id))
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def clear_cart(self, cart_id: str) -> None:
        with self.Session() as session:
            session.execute(delete(CartItemRow).where(CartItemRow.cart_id == cart_id))
            session.commit()

    # Admin users

    def get_admin_user_by_email(self, email: str) -> Optional[AdminUserRecord]:
        with self.Session() as session:
            row = session.execute(
                select(AdminUserRow).where(AdminUserRow.email == email)
            ).scalar_one_or_none()
            if not row:
                return None
            return AdminUserRecord(
                id=row.id,
                email=row.email,
                password_hash=row.password_hash,
                created_at=row.created_at,
            )

    def create_admin_user(self, email: str, password_hash: str) -> AdminUserRecord:
        with self.Session() as session:
            row = AdminUserRow(
                email=email, password_hash=password_hash, created_at=time.time()
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return AdminUserRecord(
                id=row.id,
                email=row.email,
                password_hash=row.password_hash,
                created_at=row.created_at,
            )


Base = declarative_base()


class CategoryRow(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    image_url = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class SubcategoryRow(Base):
    __tablename__ = "subcategories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    filter_config = Column(JsonType, nullable=False, default=list)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(Float, nullable=False)


class ProductRow(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    subcategory_id = Column(
        Integer, ForeignKey("subcategories.id"), nullable=False, index=True
    )
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=True)
    stock = Column(Integer, nullable=False, default=0)
    brand = Column(String, nullable=True)
    attributes = Column(JsonType, nullable=False, default=dict)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class AssetRow(Base):
    __tablename__ = "product_assets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind = Column(String, nullable=False)
    section = Column(String, nullable=False, index=True)
    storage_bucket = Column(String, nullable=False)
    storage_path = Column(String, nullable=False)
    title = Column(String, nullable=True)
    alt = Column(String, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_primary = Column(Boolean, nullable=False, default=False)
    is_secondary = Column(Boolean, nullable=False, default=False)
    poster_storage_path = Column(String, nullable=True)
    duration_seconds = Column(Float, nullable=True)
    filename = Column(String, nullable=True)
    mime_type = Column(String, nullable=True)
    file_size_bytes = Column(Integer, nullable=True)
    is_public = Column(Boolean, nullable=False, default=True)
    created_at = Column(Float, nullable=False)


class CartItemRow(Base):
    __tablename__ = "cart_items"

    cart_id = Column(String, primary_key=True)
    product_id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    brand = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    added_at = Column(Float, nullable=False)


class AdminUserRow(Base):
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)
