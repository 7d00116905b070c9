"""Restaurant and menu models.

Restaurants are owned by the resource gateway. The core only reads them; the
region attribute is the unit of access scoping.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class MenuItem(BaseModel):
    """Menu item model."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Unique identifier for the menu item")
    name: str = Field(..., description="Item name")
    description: str | None = Field(None, description="Item description")
    price: Decimal = Field(..., description="Item price", ge=0)
    category: str | None = Field(None, description="Category label, e.g. 'Appetizers'")
    image_url: str | None = Field(None, description="URL to item image")


class MenuSection(BaseModel):
    """Group of menu items shown under one heading."""

    id: str = Field(..., description="Unique identifier for the section")
    name: str = Field(..., description="Section name, e.g. 'Main Courses'")
    items: list[MenuItem] = Field(default_factory=list, description="Items in the section")


class Restaurant(BaseModel):
    """Restaurant model."""

    id: str = Field(..., description="Unique identifier for the restaurant")
    name: str = Field(..., description="Restaurant name")
    region: str = Field(..., description="Region used for access scoping")
    address: str | None = Field(None, description="Street address")
    cuisine: str | None = Field(None, description="Cuisine label")
    rating: float | None = Field(None, description="Average rating", ge=0, le=5)
    image_url: str | None = Field(None, description="URL to restaurant image")
    menu: list[MenuSection] = Field(default_factory=list, description="Menu sections")

    def find_menu_item(self, menu_item_id: str) -> MenuItem | None:
        """Find a menu item by ID across all sections.

        Args:
            menu_item_id: The menu item to look up

        Returns:
            MenuItem if present on this restaurant's menu, None otherwise
        """
        for section in self.menu:
            for item in section.items:
                if item.id == menu_item_id:
                    return item
        return None
