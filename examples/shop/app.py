"""Shop: model binding, scoped children, named rate limits, error handlers.

Products live in an in-memory repository. ``/product {shop} {product:slug}``
binds both models and only finds products that belong to the shop.
Ordering is limited to two attempts per minute per user.
"""

from dataclasses import dataclass, field

from perch import App, AppConfig, Limit, Model, Request
from perch.binding import MemoryRepository
from perch.errors import ModelNotFound


@dataclass
class Product(Model):
    id: int
    slug: str
    price: int


@dataclass
class Shop(Model):
    id: int
    name: str
    products: list[Product] = field(default_factory=list)


tea = Product(1, "tea", 3)
cake = Product(2, "cake", 5)
repository = MemoryRepository([Shop(1, "Corner", [tea]), Shop(2, "Bakery", [cake]), tea, cake])

app = App(AppConfig(binding_failure="abort"), repository=repository)


@app.limiter.define("orders")
def orders(request: Request) -> Limit:
    return Limit.per_minute(2).by(request.user_id)


@app.command("product {shop} {product:slug}")
def show(shop: Shop, product: Product):
    return f"{product.slug} at {shop.name}: {product.price}"


with app.group(prefix="order", name="order.", middleware="throttle:orders"):

    @app.command("{product}", name="place")
    def place(product: Product):
        return f"Ordered {product.slug}"


@app.error(ModelNotFound)
def missing(request: Request, exc: ModelNotFound):
    return f"No {exc.param} called {exc.value!r}"
