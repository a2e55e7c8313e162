import math


class PaginatePage:
    def meta(self, page: int, per_page: int, total: int) -> dict:
        return {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": math.ceil(total / per_page) if per_page else 0,
        }

    def page_of(self, items: list, page: int, per_page: int, total: int) -> dict:
        return {"data": items, "meta": self.meta(page, per_page, total)}


paginator = PaginatePage()
