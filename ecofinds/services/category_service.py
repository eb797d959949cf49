from sqlalchemy import delete, exists, select
from sqlalchemy.orm import Session

from ecofinds.exceptions import DomainConflict, NotFound
from ecofinds.models.category import Category
from ecofinds.models.product import Product
from ecofinds.schemas.category import CategoryCreate, CategoryUpdate

DEFAULT_CATEGORIES = [
    ("Electronics", "📱", "Phones, laptops, gadgets and accessories"),
    ("Fashion", "👕", "Clothing, shoes and accessories"),
    ("Home & Garden", "🏠", "Furniture, decor and garden supplies"),
    ("Sports & Fitness", "⚽", "Sports equipment and fitness gear"),
    ("Books & Media", "📚", "Books, movies, music and games"),
    ("Toys & Games", "🧸", "Toys, board games and puzzles"),
    ("Automotive", "🚗", "Car parts and accessories"),
    ("Beauty & Health", "💄", "Beauty products and health items"),
    ("Art & Crafts", "🎨", "Art supplies and handmade items"),
    ("Other", "📦", "Everything else"),
]


class CategoryService:
    def __init__(self, db: Session):
        self.db = db

    def get_or_404(self, category_id: int) -> Category:
        category = self.db.get(Category, category_id)
        if category is None:
            raise NotFound("Category not found")
        return category

    def create(self, data: CategoryCreate) -> Category:
        category = Category(**data.model_dump())
        self.db.add(category)
        self.db.commit()
        self.db.refresh(category)
        return category

    def update(self, category_id: int, data: CategoryUpdate) -> Category:
        category = self.get_or_404(category_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(category, key, value)
        self.db.commit()
        self.db.refresh(category)
        return category

    def delete(self, category_id: int) -> None:
        """Delete a category only while no product references it."""
        in_use = exists(select(Product.id).where(Product.category_id == category_id))
        result = self.db.execute(
            delete(Category).where(Category.id == category_id, ~in_use)
        )
        if result.rowcount == 0:
            self.db.rollback()
            self.get_or_404(category_id)
            raise DomainConflict("Cannot delete a category that still has products")
        self.db.commit()

    def seed_defaults(self) -> int:
        existing = set(self.db.execute(select(Category.name)).scalars())
        created = 0
        for name, icon, description in DEFAULT_CATEGORIES:
            if name not in existing:
                self.db.add(Category(name=name, icon=icon, description=description))
                created += 1
        self.db.commit()
        return created
