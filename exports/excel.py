"""Spreadsheet exports in the ledger's import layout.

Generates workbooks matching Holded's import templates so a run can be
imported by hand when the API is unavailable (or with ``--excel-only``):

- Products: Importar_Productos layout, 19 columns
- Invoices: Importar_Facturas_emitidas layout, 32 columns, ONE ROW PER LINE
  ITEM (rows sharing an invoice number form one invoice)
- Sales summary: plain reporting sheet, one row per order

Headers must stay exactly as the ledger expects them; the import rejects
renamed columns.
"""

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, List, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from core.dates import DEFAULT_TIMEZONE, format_ledger_date, today
from core.models import Order, Product
from core.observability import get_logger
from sync_engine.tax import HARD_DEFAULT_RATE, net_price

logger = get_logger(__name__)

SALES_ACCOUNT = "700000000"
PURCHASES_ACCOUNT = "62900000"


# =============================================================================
# Column Layouts
# =============================================================================

PRODUCT_COLUMNS = [
    "SKU",
    "Nombre",
    "Descripción",
    "Código de barras",
    "Código de fábrica",
    "cat - Categoría",
    "Coste (Subtotal)",
    "Precio compra (Subtotal)",
    "Precio venta (Subtotal)",
    "Impuesto de venta",
    "Impuesto de compras",
    "Stock",
    "Peso",
    "Fecha de inicio dd/mm/yyyy",
    "Tags separados por -",
    "Proveedor (Código)",
    "Cuenta ventas",
    "Cuenta compras",
    "Almacén",
]

INVOICE_COLUMNS = [
    "Num factura",
    "Formato de numeración",
    "Fecha dd/mm/yyyy",
    "Fecha de vencimiento dd/mm/yyyy",
    "Descripción",
    "Nombre del contacto",
    "NIF del contacto",
    "Dirección",
    "Población",
    "Código postal",
    "Provincia",
    "País",
    "Concepto",
    "Descripción del producto",
    "SKU",
    "Precio unidad",
    "Unidades",
    "Descuento %",
    "IVA %",
    "Retención %",
    "Rec. de eq. %",
    "Operación",
    "Forma de pago (ID)",
    "Cantidad cobrada",
    "Fecha de cobro",
    "Cuenta de pago",
    "Tags separados por -",
    "Nombre canal de venta",
    "Cuenta canal de venta",
    "Moneda",
    "Cambio de moneda",
    "Almacén",
]

SUMMARY_COLUMNS = [
    "Fecha",
    "Origen",
    "Nº Pedido",
    "Cliente",
    "Email",
    "Subtotal",
    "IVA",
    "Total",
    "Método Pago",
    "Productos",
]

HEADER_FILL = PatternFill(fill_type="solid", fgColor="FFE0E0E0")


def _number(value: Optional[Decimal]) -> Any:
    return float(value) if value is not None else ""


def _style_header(ws) -> None:
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.fill = HEADER_FILL


def _autofit(ws) -> None:
    for col_idx, column in enumerate(ws.iter_cols(values_only=True), 1):
        longest = max((len(str(value)) for value in column if value is not None), default=0)
        ws.column_dimensions[get_column_letter(col_idx)].width = max(10, min(longest, 50)) + 2


class SpreadsheetExporter:
    """Writes dated import workbooks into ``exports_dir``."""

    def __init__(
        self,
        exports_dir: Path,
        default_vat_rate: Decimal = HARD_DEFAULT_RATE,
        numbering_format: str = "F[YY]%%%%",
        timezone: str = DEFAULT_TIMEZONE,
    ):
        self.exports_dir = Path(exports_dir)
        self.default_vat_rate = default_vat_rate
        self.numbering_format = numbering_format
        self.timezone = timezone

    def _path(self, prefix: str, filename: Optional[str]) -> Path:
        self.exports_dir.mkdir(parents=True, exist_ok=True)
        return self.exports_dir / (filename or f"{prefix}_{today(self.timezone).isoformat()}.xlsx")

    def _save(self, wb: Workbook, path: Path, label: str) -> Path:
        _autofit(wb.active)
        wb.save(path)
        logger.info(f"{label} exported to: {path}")
        return path

    # =========================================================================
    # Products
    # =========================================================================

    def product_row(self, product: Product) -> List[Any]:
        rate = product.default_vat_rate if product.default_vat_rate is not None else self.default_vat_rate
        sku = f"{product.site_prefix}-{product.sku}" if product.site_prefix else product.sku
        return [
            sku,
            product.name,
            product.description[:500],
            "",
            "",
            product.categories[0] if product.categories else "",
            "",
            "",
            _number(net_price(product.price, rate, product.prices_include_tax)),
            _number(rate),
            0,
            _number(product.stock),
            _number(product.weight),
            format_ledger_date(datetime.now(), self.timezone),
            "-".join(product.tags),
            "",
            SALES_ACCOUNT,
            PURCHASES_ACCOUNT,
            "",
        ]

    def export_products(self, products: Sequence[Product], filename: Optional[str] = None) -> Path:
        wb = Workbook()
        ws = wb.active
        ws.title = "Productos"
        ws.append(PRODUCT_COLUMNS)
        _style_header(ws)

        for product in products:
            ws.append(self.product_row(product))

        return self._save(wb, self._path("productos", filename), "Products")

    # =========================================================================
    # Invoices
    # =========================================================================

    def invoice_rows(self, order: Order, invoice_number: str) -> List[List[Any]]:
        invoice_date = format_ledger_date(order.date, self.timezone)
        customer = order.customer
        description = f"{order.source} - {order.site_name or 'Venta'} #{order.reference}"

        rows = []
        for index, item in enumerate(order.items):
            first = index == 0
            rate = item.tax_rate if item.tax_rate is not None else self.default_vat_rate
            rows.append([
                invoice_number,
                self.numbering_format,
                invoice_date,
                invoice_date,
                description if first else "",
                (customer.name if customer and customer.name else "Cliente") if first else "",
                (customer.vat_number if customer else "") if first else "",
                (customer.address if customer else "") if first else "",
                (customer.city if customer else "") if first else "",
                (customer.postal_code if customer else "") if first else "",
                (customer.province if customer else "") if first else "",
                (customer.country if customer else "España") if first else "",
                item.name or "Producto",
                item.description,
                item.sku,
                _number(item.price),
                _number(item.quantity),
                _number(item.discount),
                _number(rate),
                0,
                0,
                "general",
                "",
                _number(order.total) if first else "",
                invoice_date if first else "",
                "",
                "-".join(t for t in (order.source, order.site_prefix) if t),
                order.sales_channel or "",
                SALES_ACCOUNT,
                (order.currency or "EUR").lower(),
                1,
                "",
            ])
        return rows

    def export_invoices(self, orders: Sequence[Order], filename: Optional[str] = None) -> Path:
        wb = Workbook()
        ws = wb.active
        ws.title = "Facturas"
        ws.append(INVOICE_COLUMNS)
        _style_header(ws)

        for counter, order in enumerate(orders, 1):
            invoice_number = f"F{order.date.strftime('%y')}{counter:04d}"
            for row in self.invoice_rows(order, invoice_number):
                ws.append(row)

        return self._save(wb, self._path("facturas", filename), "Invoices")

    # =========================================================================
    # Sales Summary
    # =========================================================================

    def export_sales_summary(self, orders: Sequence[Order], filename: Optional[str] = None) -> Path:
        wb = Workbook()
        ws = wb.active
        ws.title = "Resumen Ventas"
        ws.append(SUMMARY_COLUMNS)
        _style_header(ws)

        for order in orders:
            customer = order.customer
            ws.append([
                format_ledger_date(order.date, self.timezone),
                f"{order.source} - {order.site_prefix}" if order.site_prefix else order.source,
                order.reference,
                customer.name if customer and customer.name else "Cliente",
                customer.email if customer else "",
                _number(order.subtotal or order.total - order.tax),
                _number(order.tax),
                _number(order.total),
                order.payment_method or order.payment_type or "",
                "; ".join(f"{item.name} x{item.quantity}" for item in order.items),
            ])

        return self._save(wb, self._path("resumen_ventas", filename), "Sales summary")
