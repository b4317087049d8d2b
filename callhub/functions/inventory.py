"""Product availability with a local -> live search -> static fallback chain."""

import re

from callhub.conversation.models import CallContext
from callhub.datastore.base import ConversationDatastore
from callhub.errors import DependencyError
from callhub.functions.base import FunctionHandler
from callhub.functions.fallback import FallbackChain, FallbackTier
from callhub.search.client import ProductSearch, SearchCandidate
from callhub.utils.language import detect_language

_PUNCT_RE = re.compile(r"[^\w\s]")
_SPACES_RE = re.compile(r"\s+")

MAX_LIVE_RESULTS = 3


def normalize_search_term(term: str) -> str:
    return _SPACES_RE.sub(" ", _PUNCT_RE.sub(" ", term.lower())).strip()


def _price(value: float | None) -> str:
    return f"€{value:.2f}" if value is not None else "N/A"


def _in_stock_message(product: dict, language: str) -> str:
    if language == "el":
        return (
            f"Ναι! {product['name']} είναι διαθέσιμο. Έχουμε {product['stock_quantity']} "
            f"μονάδες στην τιμή των {_price(product.get('price'))}. Θα θέλατε να σας κρατήσω ένα;"
        )
    return (
        f"Yes! {product['name']} is in stock. We have {product['stock_quantity']} units "
        f"available at {_price(product.get('price'))}. Would you like me to reserve one for you?"
    )


def _out_of_stock_message(product: dict, language: str) -> str:
    if language == "el":
        return (
            f"Δυστυχώς το {product['name']} δεν είναι διαθέσιμο αυτή τη στιγμή. "
            "Θα θέλατε να δείτε παρόμοια προϊόντα;"
        )
    return (
        f"Unfortunately {product['name']} is currently out of stock. "
        "Would you like me to check similar products?"
    )


def _live_message(candidate: SearchCandidate, language: str) -> str:
    if language == "el":
        stock = "Είναι διαθέσιμο για παραγγελία!" if candidate.in_stock else "Δυστυχώς είναι εξαντλημένο."
        return f'Βρήκα το "{candidate.name}" στην ιστοσελίδα μας στην τιμή των {_price(candidate.price)}. {stock}'
    stock = "It's available for order!" if candidate.in_stock else "Unfortunately it's out of stock."
    return f'I found "{candidate.name}" on our website for {_price(candidate.price)}. {stock}'


def _static_message(term: str, language: str) -> str:
    if language == "el":
        return (
            f'Για το "{term}", μπορείτε να μας καλέσετε στο 77-111-104 ή να επισκεφτείτε '
            "την ιστοσελίδα μας armenius.com.cy. Μπορώ να σας κλείσω ραντεβού;"
        )
    return (
        f'For "{term}", please call us at 77-111-104 or visit armenius.com.cy for the most '
        "current information. Can I book you an appointment for personalized service?"
    )


class CheckInventory(FunctionHandler):
    name = "checkInventory"
    ttl_seconds = 300
    fallback_message = (
        "I'm having trouble with our systems right now. You can visit armenius.com.cy for "
        "current products and prices, or call us at 77-111-104."
    )

    def __init__(self, datastore: ConversationDatastore, search: ProductSearch | None = None):
        self._datastore = datastore
        self._search = search
        self._chain = FallbackChain([
            FallbackTier("local_catalogue", self._from_catalogue),
            FallbackTier("live_search", self._from_live_search),
            FallbackTier("static", self._static),
        ])

    async def execute(self, params: dict, context: CallContext) -> dict:
        sku = params.get("product_sku")
        term = params.get("product_name") or sku
        if not term:
            return {
                "available": False,
                "message": "I need a product name or SKU to check inventory. What product are you looking for?",
                "requires_input": True,
            }
        language = detect_language(term)
        return await self._chain.run(term, sku, language)

    async def _from_catalogue(self, term: str, sku: str | None, language: str) -> dict | None:
        product = await self._datastore.get_product(sku) if sku else None
        if product is None:
            matches = await self._datastore.search_products(normalize_search_term(term), 5)
            if not matches:
                return None
            in_stock = [p for p in matches if p.get("stock_quantity", 0) > 0]
            product = in_stock[0] if in_stock else matches[0]
        else:
            matches = [product]

        available = product.get("stock_quantity", 0) > 0
        return {
            "available": available,
            "language": language,
            "message": _in_stock_message(product, language) if available else _out_of_stock_message(product, language),
            "product": {
                "name": product["name"],
                "sku": product.get("sku"),
                "price": product.get("price"),
                "stock": product.get("stock_quantity", 0),
            },
            "alternatives": [p["name"] for p in matches if p is not product][:3],
        }

    async def _from_live_search(self, term: str, sku: str | None, language: str) -> dict | None:
        if self._search is None:
            return None
        candidates = await self._search.query(term, MAX_LIVE_RESULTS)
        if not candidates:
            return None
        best = candidates[0]
        return {
            "available": best.in_stock,
            "language": language,
            "message": _live_message(best, language),
            "product": {"name": best.name, "price": best.price, "url": best.url},
            "live_data": True,
            "other_results": [c.name for c in candidates[1:]],
        }

    async def _static(self, term: str, sku: str | None, language: str) -> dict:
        return {
            "available": False,
            "language": language,
            "message": _static_message(term, language),
            "system_issue": True,
        }


class SearchLiveProducts(FunctionHandler):
    name = "searchLiveProducts"
    ttl_seconds = 600
    fallback_message = (
        "I'm having trouble accessing the latest product information right now. "
        "Let me check our current inventory database instead."
    )

    def __init__(self, search: ProductSearch | None):
        self._search = search

    async def execute(self, params: dict, context: CallContext) -> dict:
        query = params.get("product_query") or params.get("query")
        if not query:
            return {"success": False, "message": "What product should I search for?", "requires_input": True}
        if self._search is None:
            raise DependencyError("product_search", "live search is not configured")

        limit = int(params.get("max_results") or MAX_LIVE_RESULTS)
        candidates = await self._search.query(query, limit)
        language = detect_language(query)
        if not candidates:
            return {
                "success": True,
                "language": language,
                "products": [],
                "message": f'I couldn\'t find "{query}" on our website right now.',
            }
        return {
            "success": True,
            "language": language,
            "products": [
                {"name": c.name, "price": c.price, "url": c.url, "in_stock": c.in_stock}
                for c in candidates
            ],
            "message": _live_message(candidates[0], language),
        }


# (minimum quantity, discount) from the largest tier down
QUANTITY_DISCOUNTS = ((10, 0.10), (5, 0.05))


def quantity_discount(quantity: int) -> tuple[int, float]:
    """Return the (tier minimum, discount) that applies to a quantity."""
    for minimum, discount in QUANTITY_DISCOUNTS:
        if quantity >= minimum:
            return minimum, discount
    return 1, 0.0


class GetProductPrice(FunctionHandler):
    name = "getProductPrice"
    ttl_seconds = 180  # prices change more often than stock
    fallback_message = (
        "I'm having trouble accessing our current pricing. "
        "Please call us at 77-111-104 for the latest prices."
    )

    def __init__(self, datastore: ConversationDatastore):
        self._datastore = datastore

    async def execute(self, params: dict, context: CallContext) -> dict:
        identifier = params.get("product_identifier") or params.get("product_name") or params.get("product_sku")
        if not identifier:
            return {
                "error": True,
                "message": "I need a product name or SKU to check pricing. What product are you interested in?",
                "requires_input": True,
            }
        try:
            quantity = max(1, int(params.get("quantity") or 1))
        except (TypeError, ValueError):
            return {"error": True, "message": "How many units would you like a price for?", "requires_input": True}

        language = detect_language(identifier)
        product = await self._datastore.get_product(identifier)
        matches = [product] if product else await self._datastore.search_products(
            normalize_search_term(identifier), 3
        )

        if not matches:
            if language == "el":
                message = (
                    f'Δε μπόρεσα να βρω το "{identifier}" στον κατάλογό μας. '
                    "Μπορείτε να δώσετε περισσότερες λεπτομέρειες;"
                )
            else:
                message = f'I couldn\'t find "{identifier}" in our catalog. Can you provide more details?'
            return {"found": False, "language": language, "message": message, "search_term": identifier}

        if len(matches) > 1:
            listing = "; ".join(f"{p['name']} at {_price(p.get('price'))}" for p in matches)
            return {
                "found": True,
                "language": language,
                "multiple_matches": True,
                "products": [{"name": p["name"], "sku": p.get("sku"), "price": p.get("price")} for p in matches],
                "message": f"I found several products: {listing}. Which one are you interested in?",
            }

        product = matches[0]
        minimum, discount = quantity_discount(quantity)
        unit_price = round(float(product["price"]) * (1 - discount), 2)
        total_price = round(unit_price * quantity, 2)
        stock = product.get("stock_quantity", 0)
        if language == "el":
            note = f" ({discount:.0%} έκπτωση για {minimum}+ τεμάχια)" if discount else ""
            message = (
                f"{product['name']} κοστίζει {_price(unit_price)} το τεμάχιο{note}. Για {quantity} τεμάχια, "
                f"το συνολικό κόστος είναι {_price(total_price)}. Έχουμε {stock} σε απόθεμα."
            )
        else:
            note = f" ({discount:.0%} discount for {minimum}+ items)" if discount else ""
            message = (
                f"{product['name']} costs {_price(unit_price)} each{note}. For {quantity} units, "
                f"the total would be {_price(total_price)}. We have {stock} in stock."
            )
        return {
            "found": True,
            "language": language,
            "product": {
                "name": product["name"],
                "sku": product.get("sku"),
                "unit_price": unit_price,
                "quantity": quantity,
                "total_price": total_price,
                "discount": discount,
                "stock": stock,
            },
            "message": message,
        }
