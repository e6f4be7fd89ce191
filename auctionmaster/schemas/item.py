# auctionmaster/schemas/item.py
from pydantic import BaseModel, ConfigDict, Field


class ItemPayload(BaseModel):
    """Serialized item handed between players; opaque to the engine"""

    model_config = ConfigDict(frozen=True)

    material: str = Field(..., min_length=1, description="Item type identifier")
    amount: int = Field(1, ge=1, description="Stack size")
    display_name: str | None = None
    lore: list[str] | None = None
    enchantments: dict[str, int] = Field(default_factory=dict)
    nbt_data: str | None = Field(None, description="Base64 encoded extra data")

    def display_string(self) -> str:
        """User-friendly name, e.g. DIAMOND_SWORD -> Diamond Sword"""
        if self.display_name:
            return self.display_name
        return " ".join(
            word.capitalize() for word in self.material.lower().replace("_", " ").split(" ")
        )
