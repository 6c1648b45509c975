from .recipes import BuildRecipes

__all__ = ["BuildRecipes"]
