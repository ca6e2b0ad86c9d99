# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for the article engagement core:
#
#   access         : author guard and draft/publish visibility gate
#   article_service: create / read / update / delete + listing + cache
#   comment_service: append-only comments
#   like_service   : like/unlike toggle over the liked-by set
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency, and report failures with the exceptions in
# ``blog_api.exceptions``.
