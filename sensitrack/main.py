from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone

import gradio as gr

from sensitrack.config import configure_logging, settings
from sensitrack.data_providers.product_shards import ProductShardClient
from sensitrack.data_providers.tracker_api import (
    ApiIngredientReactionStore,
    ApiProductNoteStore,
    ApiProductReactionStore,
    ApiTestStore,
    ApiWishlistStore,
    TrackerApiClient,
)
from sensitrack.errors import TrackerError
from sensitrack.schemas import EliminationTest, Reaction
from sensitrack.services.note_service import ProductNoteService
from sensitrack.services.reaction_aggregation import annotate, group_by_letter, group_products_by_reaction
from sensitrack.services.reaction_service import ReactionFanout
from sensitrack.services.search_service import SearchEngine
from sensitrack.services.test_service import EliminationTestManager
from sensitrack.storage.memory import (
    InMemoryIngredientReactionStore,
    InMemoryProductNoteStore,
    InMemoryProductReactionStore,
    InMemoryTestStore,
    InMemoryWishlistStore,
)
from sensitrack.storage.product_cache import (
    CachedProductCatalog,
    JsonFileCacheStorage,
    MemoryCacheStorage,
    ProductCache,
)
from sensitrack.storage.stores import IngredientReactionStore, ProductReactionStore, WishlistStore


@dataclass
class Services:
    search: SearchEngine
    tests: EliminationTestManager
    cache: ProductCache
    product_reactions: ProductReactionStore
    ingredient_reactions: IngredientReactionStore
    wishlist: WishlistStore
    notes: ProductNoteService


def build_services() -> Services:
    storage = JsonFileCacheStorage(settings.product_cache_path) if settings.product_cache_path else MemoryCacheStorage()
    cache = ProductCache(storage)
    if settings.tracker_api_url:
        api = TrackerApiClient()
        test_store, product_store = ApiTestStore(api), ApiProductReactionStore(api)
        ingredient_store, wishlist = ApiIngredientReactionStore(api), ApiWishlistStore(api)
        note_store = ApiProductNoteStore(api)
    else:
        test_store, product_store = InMemoryTestStore(), InMemoryProductReactionStore()
        ingredient_store, wishlist = InMemoryIngredientReactionStore(), InMemoryWishlistStore()
        note_store = InMemoryProductNoteStore()
    fanout = ReactionFanout(product_store, ingredient_store, CachedProductCatalog(cache))
    return Services(
        search=SearchEngine(ProductShardClient()),
        tests=EliminationTestManager(test_store, fanout),
        cache=cache,
        product_reactions=product_store,
        ingredient_reactions=ingredient_store,
        wishlist=wishlist,
        notes=ProductNoteService(note_store),
    )


services = build_services()


async def search_fn(term: str) -> tuple[list[list], str]:
    try:
        results = await services.search.search(term)
    except TrackerError as exc:
        return [], exc.user_message
    services.cache.preload(results)
    rows = [[p.code, p.product_name, p.brands or "No brand", p.relevance_score] for p in results]
    if not rows:
        return [], f'No products found for "{term}". Try a different search term.'
    return rows, f"{len(rows)} products"


def cache_fn(term: str) -> tuple[list[list], str]:
    products = services.cache.search(term) if term.strip() else services.cache.most_accessed()
    services.cache.flush()
    stats = services.cache.stats()
    summary = f"{stats.total_products} cached products, hit rate {stats.hit_rate:.0f}%"
    if stats.most_accessed_code:
        summary += f", most viewed {stats.most_accessed_code}"
    return [[p.code, p.product_name, p.brands or "No brand"] for p in products], summary


async def start_fn(user_id: str, product_code: str) -> str:
    try:
        test = await services.tests.start_test(user_id.strip(), product_code.strip())
    except TrackerError as exc:
        return exc.user_message
    return f"Test {test.id} started, ends {test.finish_date:%d %b %Y}."


async def complete_fn(user_id: str, test_id: str, result: str) -> str:
    if not result:
        return "Please select a reaction before completing the test."
    try:
        test = await services.tests.complete_test(user_id.strip(), test_id.strip(), Reaction(result))
    except TrackerError as exc:
        return exc.user_message
    return f"Test completed: {test.result.value}."


def _test_rows(tests: list[EliminationTest]) -> list[list]:
    now = services.tests.clock()
    return [
        [
            t.id,
            t.product_code,
            f"{t.start_date:%d %b %Y}",
            f"{t.finish_date:%d %b %Y}",
            t.result.value if t.result else ("ready for result" if t.is_expired(now) else f"{t.days_remaining(now)} days left"),
        ]
        for t in tests
    ]


async def tests_fn(user_id: str) -> list[list]:
    try:
        tests = await services.tests.tests.list_for_user(user_id.strip())
    except TrackerError as exc:
        raise gr.Error(exc.user_message) from exc
    return _test_rows(tests)


async def history_fn(user_id: str, view: str, day: str) -> list[list]:
    try:
        if view == "Awaiting result":
            tests = await services.tests.expired_tests(user_id.strip())
        elif view == "Running on day":
            try:
                moment = datetime.combine(date.fromisoformat(day.strip()), time(12), tzinfo=timezone.utc)
            except ValueError as exc:
                raise gr.Error("Enter the day as YYYY-MM-DD.") from exc
            tests = await services.tests.active_tests_on(user_id.strip(), moment)
        else:
            tests = await services.tests.test_history(user_id.strip())
    except TrackerError as exc:
        raise gr.Error(exc.user_message) from exc
    return _test_rows(tests)


async def reaction_fn(user_id: str, product_code: str, reaction: str) -> str:
    try:
        if reaction:
            saved = await services.tests.record_reaction(user_id.strip(), product_code.strip(), Reaction(reaction))
            return f"Reaction saved for the product and {len(saved)} ingredients."
        await services.tests.clear_reaction(user_id.strip(), product_code.strip())
    except TrackerError as exc:
        return exc.user_message
    return "Reaction cleared."


async def ingredients_fn(user_id: str, product_code: str) -> list[list]:
    product = services.cache.get(product_code.strip())
    services.cache.flush()
    if product is None:
        return []
    try:
        reactions = await services.ingredient_reactions.find_all(user_id.strip())
    except TrackerError as exc:
        raise gr.Error(exc.user_message) from exc
    return [[item.display_name, item.reaction.value if item.reaction else "Not tested"] for item in annotate(product, reactions)]


async def dictionary_fn(user_id: str) -> str:
    try:
        reactions = await services.ingredient_reactions.find_all(user_id.strip())
    except TrackerError as exc:
        return exc.user_message
    groups = group_by_letter(reactions)
    if not groups:
        return "No ingredient reactions yet."
    lines = []
    for group in groups:
        lines.append(f"### {group.letter}")
        lines.extend(f"- {r.ingredient_name} ({r.reaction.value})" for r in group.items)
    return "\n".join(lines)


async def products_by_reaction_fn(user_id: str) -> str:
    try:
        reactions = await services.product_reactions.find_all(user_id.strip())
    except TrackerError as exc:
        return exc.user_message
    lines = []
    for reaction, codes in group_products_by_reaction(reactions).items():
        lines.append(f"### {reaction.value} ({len(codes)})")
        lines.extend(f"- {code}" for code in codes)
    return "\n".join(lines)


async def note_fn(user_id: str, product_code: str) -> tuple[str, int | None]:
    try:
        note = await services.notes.note_for(user_id.strip(), product_code.strip())
    except TrackerError as exc:
        raise gr.Error(exc.user_message) from exc
    if note is None:
        return "", None
    return note.note, note.rating


async def save_note_fn(user_id: str, product_code: str, text: str, rating: int | None) -> str:
    try:
        note = await services.notes.save(user_id.strip(), product_code.strip(), text, rating)
    except TrackerError as exc:
        return exc.user_message
    return f"Note saved ({len(note.note)}/500)."


async def wishlist_fn(user_id: str, product_code: str) -> list[list]:
    try:
        if product_code.strip():
            await services.wishlist.add(user_id.strip(), product_code.strip())
        items = await services.wishlist.find_all(user_id.strip())
    except TrackerError as exc:
        raise gr.Error(exc.user_message) from exc
    return [[item.id, item.product_code] for item in items]


async def wishlist_remove_fn(user_id: str, item_id: str) -> list[list]:
    try:
        await services.wishlist.remove(user_id.strip(), item_id.strip())
    except TrackerError as exc:
        raise gr.Error(exc.user_message) from exc
    return await wishlist_fn(user_id, "")


def build_demo() -> gr.Blocks:
    reactions = [r.value for r in Reaction]
    with gr.Blocks(title="Sensitivity Tracker") as demo:
        gr.Markdown(
            """
            # Sensitivity Tracker
            Search products, run a 3-day elimination test, and see how you react to each ingredient.
            """
        )
        user = gr.Textbox(label="User ID", value="demo-user")
        with gr.Tab("Search"):
            term = gr.Textbox(label="Search")
            status = gr.Markdown()
            results = gr.Dataframe(headers=["Code", "Product", "Brand", "Score"], interactive=False)
            term.submit(search_fn, inputs=term, outputs=[results, status])
            with gr.Accordion("Recently viewed", open=False):
                cache_term = gr.Textbox(label="Filter cached products")
                cache_stats = gr.Markdown()
                cached = gr.Dataframe(headers=["Code", "Product", "Brand"], interactive=False)
                gr.Button("Show").click(cache_fn, inputs=cache_term, outputs=[cached, cache_stats])
        with gr.Tab("Tests"):
            code = gr.Textbox(label="Product code")
            test_id = gr.Textbox(label="Test ID")
            result = gr.Radio(reactions, label="Reaction")
            message = gr.Markdown()
            tests = gr.Dataframe(headers=["Test", "Product", "Start", "Finish", "Status"], interactive=False)
            gr.Button("Start Test").click(start_fn, inputs=[user, code], outputs=message)
            gr.Button("Complete Test").click(complete_fn, inputs=[user, test_id, result], outputs=message)
            gr.Button("Refresh").click(tests_fn, inputs=user, outputs=tests)
        with gr.Tab("History"):
            view = gr.Radio(["Completed", "Awaiting result", "Running on day"], value="Completed", label="Show")
            day = gr.Textbox(label="Day (YYYY-MM-DD)")
            history = gr.Dataframe(headers=["Test", "Product", "Start", "Finish", "Status"], interactive=False)
            gr.Button("Load").click(history_fn, inputs=[user, view, day], outputs=history)
        with gr.Tab("Reactions"):
            product = gr.Textbox(label="Product code")
            reaction = gr.Radio(reactions, label="Reaction (leave empty to clear)")
            saved = gr.Markdown()
            ingredients = gr.Dataframe(headers=["Ingredient", "Reaction"], interactive=False)
            gr.Button("Save").click(reaction_fn, inputs=[user, product, reaction], outputs=saved)
            gr.Button("Ingredients").click(ingredients_fn, inputs=[user, product], outputs=ingredients)
            dictionary = gr.Markdown()
            gr.Button("Dictionary").click(dictionary_fn, inputs=user, outputs=dictionary)
            by_reaction = gr.Markdown()
            gr.Button("Products by reaction").click(products_by_reaction_fn, inputs=user, outputs=by_reaction)
        with gr.Tab("Notes"):
            note_code = gr.Textbox(label="Product code")
            note_text = gr.Textbox(label="Notes", lines=4, placeholder="Add your notes about this product here...")
            rating = gr.Radio([1, 2, 3, 4, 5], label="Rating")
            note_status = gr.Markdown()
            gr.Button("Load").click(note_fn, inputs=[user, note_code], outputs=[note_text, rating])
            gr.Button("Save Notes").click(save_note_fn, inputs=[user, note_code, note_text, rating], outputs=note_status)
        with gr.Tab("Wishlist"):
            wish_code = gr.Textbox(label="Product code")
            wish_item = gr.Textbox(label="Item ID to remove")
            wishlist = gr.Dataframe(headers=["Item", "Product"], interactive=False)
            gr.Button("Add / Refresh").click(wishlist_fn, inputs=[user, wish_code], outputs=wishlist)
            gr.Button("Remove").click(wishlist_remove_fn, inputs=[user, wish_item], outputs=wishlist)
    return demo


if __name__ == "__main__":
    configure_logging()
    app = build_demo()
    app.launch(server_name=settings.gradio_server_name, server_port=settings.gradio_server_port)
