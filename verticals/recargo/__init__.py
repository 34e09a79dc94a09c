"""Recargo de Equivalencia vertical.

Keeps the 5.2% equivalence surcharge line of Shopify orders consistent:
- Line-item classifier and subtotal calculator
- Pure-function decision engine (skip / insert / replace / reject)
- Mutation coordinator: bulk replace for drafts, staged edit for orders
- Shopify Admin GraphQL gateway
- orders/paid webhook trigger
- FastAPI router
"""
