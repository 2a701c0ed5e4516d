"""
Category trees for products and services.

Both trees share the same rules: at most two levels, names unique within a
parent, display order assigned automatically, and no deletion while
subcategories or products still reference the node.
"""
import logging
from typing import Any, Dict, Iterable, List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.database import conflict_from_integrity_error
from marketplace.exceptions import ValidationError, NotFoundError, ConflictError
from marketplace.models import Category, ServiceCategory, Product
from marketplace.services.admin_service import require_super_admin
from marketplace.utils.validation import is_valid_name

logger = logging.getLogger(__name__)

PRODUCT_KIND = 'product'
SERVICE_KIND = 'service'

CATEGORY_MODELS = {
    PRODUCT_KIND: Category,
    SERVICE_KIND: ServiceCategory,
}


def _model(kind):
    try:
        return CATEGORY_MODELS[kind]
    except KeyError:
        raise ValidationError("Category kind must be 'product' or 'service'")


def _product_fk(kind):
    return Product.category_id if kind == PRODUCT_KIND else Product.service_category_id


def get_category(session: Session, category_id, kind=PRODUCT_KIND):
    category = session.get(_model(kind), category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


def get_category_tree(session: Session, kind=PRODUCT_KIND, include_inactive=False) -> List[Dict[str, Any]]:
    """Main categories with their subcategories nested, ordered by display order."""
    model = _model(kind)
    query = session.query(model)
    if not include_inactive:
        query = query.filter(model.is_active.is_(True))
    categories = query.order_by(model.display_order.asc(), model.name.asc()).all()

    tree = []
    by_parent: Dict[Any, List] = {}
    for category in categories:
        by_parent.setdefault(category.parent_id, []).append(category)
    for main in by_parent.get(None, []):
        node = main.to_dict()
        node['children'] = [child.to_dict() for child in by_parent.get(main.id, [])]
        tree.append(node)
    return tree


def get_flat_categories(session: Session, kind=PRODUCT_KIND) -> List[Dict[str, Any]]:
    """Active categories as selectable options labelled "Parent > Child"."""
    flat = []
    for main in get_category_tree(session, kind):
        flat.append({'id': main['id'], 'label': main['name'], 'parent_id': None})
        for child in main['children']:
            flat.append({
                'id': child['id'],
                'label': f"{main['name']} > {child['name']}",
                'parent_id': main['id'],
            })
    return flat


def _check_parent(session: Session, model, parent_id):
    if parent_id is None:
        return None
    parent = session.get(model, parent_id)
    if parent is None:
        raise ValidationError("Parent category not found")
    if parent.parent_id is not None:
        raise ValidationError("Categories can only be nested two levels deep")
    return parent


def _check_name_free(session: Session, model, name, parent_id, exclude_id=None):
    query = session.query(model.id).filter(
        func.lower(model.name) == name.lower(),
        model.parent_id.is_(None) if parent_id is None else model.parent_id == parent_id
    )
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    if query.first():
        raise ConflictError(f'Category "{name}" already exists at this level')


def create_category(session: Session, actor, name, parent_id=None, description=None,
                    image_url=None, display_order=None, kind=PRODUCT_KIND):
    """Create a category; display order defaults to the end of its level."""
    require_super_admin(actor)
    model = _model(kind)
    if not is_valid_name(name):
        raise ValidationError("Category name is required and must be at most 255 characters")
    name = name.strip()
    _check_parent(session, model, parent_id)
    _check_name_free(session, model, name, parent_id)

    if display_order is None:
        current_max = session.query(func.max(model.display_order)).filter(
            model.parent_id.is_(None) if parent_id is None else model.parent_id == parent_id
        ).scalar()
        display_order = (current_max or 0) + 1

    try:
        category = model(
            name=name,
            parent_id=parent_id,
            description=description,
            image_url=image_url,
            display_order=display_order,
            is_active=True,
        )
        session.add(category)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise conflict_from_integrity_error(e, f'Category "{name}" already exists at this level')
    except Exception:
        session.rollback()
        raise

    logger.info(f"{kind} category created: {category.name} ({category.id})")
    return category


def _is_descendant(session: Session, model, category_id, candidate_id) -> bool:
    """True when ``candidate_id`` lies below ``category_id`` in the tree."""
    current = session.get(model, candidate_id)
    while current is not None and current.parent_id is not None:
        if current.parent_id == category_id:
            return True
        current = session.get(model, current.parent_id)
    return False


def update_category(session: Session, actor, category_id, changes: Dict[str, Any], kind=PRODUCT_KIND):
    """Rename, re-parent or re-order a category."""
    require_super_admin(actor)
    model = _model(kind)
    category = get_category(session, category_id, kind)

    parent_id = changes.get('parent_id', category.parent_id)
    if 'parent_id' in changes and parent_id is not None:
        if parent_id == category.id:
            raise ValidationError("A category cannot be its own parent")
        if _is_descendant(session, model, category.id, parent_id):
            raise ValidationError("Cannot move a category under its own descendant")
        _check_parent(session, model, parent_id)
        has_children = session.query(model.id).filter(model.parent_id == category.id).first()
        if has_children:
            raise ValidationError("A category with subcategories cannot become a subcategory")

    name = changes.get('name', category.name)
    if not is_valid_name(name):
        raise ValidationError("Category name is required and must be at most 255 characters")
    name = name.strip()
    if name.lower() != category.name.lower() or parent_id != category.parent_id:
        _check_name_free(session, model, name, parent_id, exclude_id=category.id)

    try:
        category.name = name
        category.parent_id = parent_id
        for field in ('description', 'image_url', 'display_order', 'is_active'):
            if field in changes:
                setattr(category, field, changes[field])
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise conflict_from_integrity_error(e, f'Category "{name}" already exists at this level')
    except Exception:
        session.rollback()
        raise

    logger.info(f"{kind} category updated: {category.id}")
    return category


def delete_category(session: Session, actor, category_id, kind=PRODUCT_KIND) -> None:
    """Hard-delete an unused leaf category."""
    require_super_admin(actor)
    model = _model(kind)
    category = get_category(session, category_id, kind)

    child_count = session.query(func.count(model.id)).filter(model.parent_id == category.id).scalar()
    if child_count:
        raise ValidationError(
            f"Cannot delete category. It has {child_count} subcategory(ies). Delete subcategories first."
        )
    product_count = session.query(func.count(Product.id)).filter(_product_fk(kind) == category.id).scalar()
    if product_count:
        raise ValidationError(f"Cannot delete category. It is used by {product_count} product(s).")

    try:
        session.delete(category)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"{kind} category deleted: {category_id}")


def deactivate_category(session: Session, actor, category_id, kind=PRODUCT_KIND):
    return update_category(session, actor, category_id, {'is_active': False}, kind)


def seed_categories(session: Session, actor, tree: Iterable[Dict[str, Any]], kind=PRODUCT_KIND) -> Dict[str, int]:
    """
    Idempotently create a category tree.

    Entries that already exist are skipped, so the seed can be re-run.
    """
    model = _model(kind)
    created = skipped = 0

    def ensure(name, parent_id, description=None):
        nonlocal created, skipped
        try:
            category = create_category(session, actor, name, parent_id=parent_id,
                                       description=description, kind=kind)
            created += 1
            return category
        except ConflictError:
            skipped += 1
            return session.query(model).filter(
                func.lower(model.name) == name.lower(),
                model.parent_id.is_(None) if parent_id is None else model.parent_id == parent_id
            ).one()

    for entry in tree:
        main = ensure(entry['name'], None, entry.get('description'))
        for child_name in entry.get('subcategories', []):
            ensure(child_name, main.id)

    logger.info(f"Seeded {kind} categories: {created} created, {skipped} skipped")
    return {'created': created, 'skipped': skipped}
