from .random_basis import apply_basis, random_orthogonal_basis

__all__ = ["apply_basis", "random_orthogonal_basis"]
