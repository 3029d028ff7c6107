from app.models.models import Post, PostMeta, Term, User, term_relationships

__all__ = ["Post", "PostMeta", "Term", "User", "term_relationships"]
