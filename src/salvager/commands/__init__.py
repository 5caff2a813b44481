from salvager.arc.cog import ArcMaterials

cogs = [ArcMaterials]


__all__ = ["cogs"]
