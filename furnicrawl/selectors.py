"""Centralised selectors for each retailer's category and product pages."""

# ==== SHARED ====
JSON_LD = "script[type='application/ld+json']"
PAGE_H1 = "h1"

# ==== IKEA ====
IKEA_PRODUCT_PATH = "/p/"
IKEA_NEXT_BTN = "button[aria-label='Next']"


def ikea_product_link(country: str, language: str) -> str:
    return f"a[href*='/{country}/{language}/p/']"


# ==== WAYFAIR ====
WAYFAIR_PRODUCT_PATH = "/pdp/"
WAYFAIR_PRODUCT_CARD = "a[data-hb-id='ProductCard']"
WAYFAIR_NEXT_BTN = "a[data-enzyme-id='PaginationNextPageLink']"
WAYFAIR_TITLE = ".ProductDetailInfoBlock-header h1"
WAYFAIR_PRICE = "[data-enzyme-id='PriceBlock']"
WAYFAIR_SKU_ATTR = "data-sku"
WAYFAIR_SKU = f"[{WAYFAIR_SKU_ATTR}]"

# ==== ARTICLE ====
ARTICLE_PRODUCT_LINK = "a[href*='/product/']"
ARTICLE_PRODUCT_CARD = "a[data-testid='productGrid-productCard-link']"
ARTICLE_LOAD_MORE = "button[data-testid='productGrid-loadMore-button']"
ARTICLE_NEXT_BTN = "button[aria-label='Next page']"
ARTICLE_TITLE = "[data-testid='product-detail-title']"
ARTICLE_PRICE = "[data-testid='product-detail-price']"
ARTICLE_DESCRIPTION = "[data-testid='product-detail-description']"
ARTICLE_SKU = "[data-testid='product-detail-sku']"

# ==== 1STDIBS (grid) ====
FIRSTDIBS_CARD_LINK = "div[data-tn='product-card'] a[href*='/furniture/']"
FIRSTDIBS_ID_LINK = "a[href*='/furniture/'][href*='/id-']"
FIRSTDIBS_ANY_ID_LINK = "a[href*='/id-']"
FIRSTDIBS_NEXT_BTN = "[data-tn='page-forward']"
FIRSTDIBS_LOAD_MORE = "button:has-text('Load More')"

# ==== 1STDIBS (product detail) ====
FIRSTDIBS_IMAGES = (
    "[data-tn='pdp-image-carousel-image-1'] figure picture img",
    "[data-tn='pdp-image-carousel-image-1'] img",
    "img[data-tn='product-image']",
    "div[data-tn='product-gallery'] img",
)
FIRSTDIBS_PRICE = "[data-tn='price-amount']"
FIRSTDIBS_READ_MORE = "[data-tn='read-more']"
FIRSTDIBS_SPEC_VALUE = "._57a9be25"
FIRSTDIBS_DIMENSIONS = {
    "height": "[data-tn='pdp-spec-detail-height']",
    "width": "[data-tn='pdp-spec-detail-width']",
    "depth": "[data-tn='pdp-spec-detail-depth']",
    "seatHeight": "[data-tn='pdp-spec-detail-secondaryHeight']",
}
FIRSTDIBS_MATERIALS = f"[data-tn='pdp-spec-detail-material'] {FIRSTDIBS_SPEC_VALUE}"
FIRSTDIBS_SPEC_FIELDS = {
    "style": "[data-tn='pdp-spec-style'] [data-tn='pdp-spec-detail-style']",
    "origin": "[data-tn='pdp-spec-place-of-origin'] [data-tn='pdp-spec-detail-origin']",
    "period": "[data-tn='pdp-spec-period'] [data-tn='pdp-spec-detail-period']",
    "dateOfManufacture": (
        "[data-tn='pdp-spec-date-of-manufacture'] "
        "[data-tn='pdp-spec-detail-dateOfManufacture']"
    ),
    "sellerLocation": "[data-tn='pdp-spec-detail-sellerLocation']",
    "referenceNumber": "[data-tn='pdp-spec-detail-referenceNumber']",
}
FIRSTDIBS_CONDITION = "[data-tn='pdp-spec-detail-condition']"
FIRSTDIBS_CONDITION_DETAILS = "[data-tn='pdp-spec-detail-conditionDetails']"
FIRSTDIBS_EXPANDING_AREA = "[data-tn='expanding-area']"
FIRSTDIBS_DESCRIPTION = ("[data-tn='pdp-description'] p", ".pdp-description")
