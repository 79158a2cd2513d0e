# ui.py
import threading
import tkinter as tk
from tkinter import messagebox, simpledialog

import ttkbootstrap as ttk
from ttkbootstrap.constants import *

from cashier import CashierSystem
from logger import get_logger
from models import CheckoutError, DiscountType, NetworkError, PaymentMethod
from utils import format_currency, format_variant_display, stock_status

logger = get_logger("ui")

ALL_CATEGORIES = "All categories"

BOOTSTRAP_THEMES = {
    "dark": "darkly",
    "light": "cosmo",
    "default": "cosmo"
}


class CashierUI:
    def __init__(self, system: CashierSystem, config=None):
        self.sys = system
        self.config = config or {}
        ui_config = self.config.get("ui", {})
        self.currency = ui_config.get("currency", "Rp")
        self.poll_ms = int(ui_config.get("event_poll_ms", 200))

        theme = BOOTSTRAP_THEMES.get(ui_config.get("theme", "default"), "cosmo")
        self.root = ttk.Window(themename=theme)
        self.root.title("POS Cashier")
        self.root.geometry("1200x760")
        self.root.minsize(900, 600)

        self.sys.notify = self._notify
        self.sys.refresh_hook = self._refresh_async

        self.branch_var = tk.StringVar()
        self.search_var = tk.StringVar()
        self.search_var.trace_add("write", lambda *args: self._refresh_products())
        self.category_var = tk.StringVar(value=ALL_CATEGORIES)
        self.customer_name_var = tk.StringVar()
        self.customer_phone_var = tk.StringVar()
        self.payment_var = tk.StringVar(value=PaymentMethod.CASH.value)
        self.cash_var = tk.StringVar(value="0")
        self.bank_var = tk.StringVar()
        self.reference_var = tk.StringVar()
        self.discount_var = tk.StringVar(value="0")
        self.discount_type_var = tk.StringVar(value=DiscountType.NOMINAL.value)
        self.subtotal_var = tk.StringVar()
        self.discount_amount_var = tk.StringVar()
        self.total_var = tk.StringVar()
        self.change_var = tk.StringVar()
        self.status_var = tk.StringVar(value="Ready")
        self._loading_fields = False

        for var in (self.discount_var, self.discount_type_var, self.cash_var, self.payment_var):
            var.trace_add("write", lambda *args: self._update_totals())

        self._build_gui()

    def _build_gui(self):
        """Build the main GUI interface"""
        main_frame = ttk.Frame(self.root)
        main_frame.pack(expand=True, fill='both', padx=10, pady=10)

        # Branch bar
        top = ttk.Frame(main_frame)
        top.pack(fill=tk.X, pady=(0, 5))
        ttk.Label(top, text="Branch:").pack(side=tk.LEFT, padx=5)
        self.branch_combo = ttk.Combobox(top, textvariable=self.branch_var, state="readonly", width=30)
        self.branch_combo.pack(side=tk.LEFT, padx=5)
        self.branch_combo.bind("<<ComboboxSelected>>", self._on_branch_selected)
        ttk.Button(top, text="Refresh", command=self._refresh_async, bootstyle="info-outline").pack(side=tk.LEFT, padx=5)
        ttk.Label(top, text="Search:").pack(side=tk.LEFT, padx=(20, 5))
        ttk.Entry(top, textvariable=self.search_var, width=30).pack(side=tk.LEFT, padx=5)
        ttk.Label(top, text="Category:").pack(side=tk.LEFT, padx=(20, 5))
        self.category_combo = ttk.Combobox(top, textvariable=self.category_var, state="readonly",
                                           values=[ALL_CATEGORIES], width=20)
        self.category_combo.pack(side=tk.LEFT, padx=5)
        self.category_combo.bind("<<ComboboxSelected>>", lambda e: self._refresh_products())

        left = ttk.Frame(main_frame)
        left.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        right = ttk.Frame(main_frame)
        right.pack(side=tk.RIGHT, fill=tk.Y, padx=(10, 0))

        # Product list
        product_frame = ttk.LabelFrame(left, text="Products", bootstyle="primary")
        product_frame.pack(fill=tk.BOTH, expand=True, padx=5, pady=5)
        cols = ("Product", "Variant", "SKU", "Price", "Stock")
        self.product_tv = ttk.Treeview(product_frame, columns=cols, show='headings', height=12)
        for c, width, anchor in zip(cols, (220, 120, 110, 100, 90), (tk.W, tk.W, tk.W, tk.E, tk.CENTER)):
            self.product_tv.heading(c, text=c)
            self.product_tv.column(c, width=width, anchor=anchor)
        self.product_tv.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        product_scroll = ttk.Scrollbar(product_frame, command=self.product_tv.yview)
        product_scroll.pack(side=tk.RIGHT, fill=tk.Y)
        self.product_tv.configure(yscrollcommand=product_scroll.set)
        self.product_tv.bind("<Double-1>", lambda e: self._add_selected_product())
        self.product_tv.bind("<Return>", lambda e: self._add_selected_product())

        # Cart
        cart_frame = ttk.LabelFrame(left, text="Cart", bootstyle="primary")
        cart_frame.pack(fill=tk.BOTH, expand=True, padx=5, pady=5)
        cart_cols = ("Product", "Qty", "Price", "Line Total", "Stock")
        self.cart_tv = ttk.Treeview(cart_frame, columns=cart_cols, show='headings', height=8)
        for c, width, anchor in zip(cart_cols, (260, 60, 110, 120, 70), (tk.W, tk.CENTER, tk.E, tk.E, tk.CENTER)):
            self.cart_tv.heading(c, text=c)
            self.cart_tv.column(c, width=width, anchor=anchor)
        self.cart_tv.tag_configure("oversold", foreground="red")
        self.cart_tv.pack(fill=tk.BOTH, expand=True)
        self.cart_tv.bind("<Double-1>", lambda e: self._edit_cart_quantity())

        cart_btns = ttk.Frame(left)
        cart_btns.pack(fill=tk.X, padx=5, pady=5)
        ttk.Button(cart_btns, text="+", width=3, command=lambda: self._step_quantity(1), bootstyle="success").pack(side=tk.LEFT, padx=2)
        ttk.Button(cart_btns, text="-", width=3, command=lambda: self._step_quantity(-1), bootstyle="secondary").pack(side=tk.LEFT, padx=2)
        ttk.Button(cart_btns, text="Edit Quantity", command=self._edit_cart_quantity).pack(side=tk.LEFT, padx=5)
        ttk.Button(cart_btns, text="Remove Selected", command=self._remove_selected, bootstyle="danger").pack(side=tk.LEFT, padx=5)
        ttk.Button(cart_btns, text="Clear Cart", command=self._clear_cart, bootstyle="warning").pack(side=tk.LEFT, padx=5)

        # Checkout panel
        checkout_frame = ttk.LabelFrame(right, text="Checkout", bootstyle="primary")
        checkout_frame.pack(fill=tk.X, padx=5, pady=5)
        fields = [
            ("Customer:", ttk.Entry(checkout_frame, textvariable=self.customer_name_var, width=20)),
            ("Phone:", ttk.Entry(checkout_frame, textvariable=self.customer_phone_var, width=20)),
            ("Payment:", ttk.Combobox(checkout_frame, textvariable=self.payment_var, state="readonly",
                                      values=[m.value for m in PaymentMethod], width=18)),
            ("Cash received:", ttk.Entry(checkout_frame, textvariable=self.cash_var, width=20)),
            ("Bank:", ttk.Entry(checkout_frame, textvariable=self.bank_var, width=20)),
            ("Reference:", ttk.Entry(checkout_frame, textvariable=self.reference_var, width=20)),
            ("Discount:", ttk.Entry(checkout_frame, textvariable=self.discount_var, width=20)),
            ("Discount type:", ttk.Combobox(checkout_frame, textvariable=self.discount_type_var, state="readonly",
                                            values=[t.value for t in DiscountType], width=18)),
        ]
        for row, (label, widget) in enumerate(fields):
            ttk.Label(checkout_frame, text=label).grid(row=row, column=0, padx=5, pady=3, sticky=tk.W)
            widget.grid(row=row, column=1, padx=5, pady=3, sticky=tk.E)

        row = len(fields)
        ttk.Separator(checkout_frame, orient=tk.HORIZONTAL).grid(row=row, column=0, columnspan=2, sticky=tk.EW, pady=5)
        for offset, (label, var) in enumerate((("Subtotal:", self.subtotal_var),
                                               ("Discount:", self.discount_amount_var),
                                               ("TOTAL:", self.total_var),
                                               ("Change:", self.change_var))):
            ttk.Label(checkout_frame, text=label).grid(row=row + 1 + offset, column=0, padx=5, pady=3, sticky=tk.W)
            ttk.Label(checkout_frame, textvariable=var, font=("Arial", 12, "bold")).grid(
                row=row + 1 + offset, column=1, padx=5, pady=3, sticky=tk.E)

        btns = ttk.Frame(checkout_frame)
        btns.grid(row=row + 5, column=0, columnspan=2, pady=10, sticky=tk.EW)
        ttk.Button(btns, text="CHECKOUT", command=self._checkout, bootstyle="success").pack(side=tk.LEFT, fill=tk.X, expand=True, padx=2)
        ttk.Button(btns, text="Hold", command=self._hold, bootstyle="warning-outline").pack(side=tk.LEFT, padx=2)

        # Held transactions
        held_frame = ttk.LabelFrame(right, text="Held Transactions", bootstyle="secondary")
        held_frame.pack(fill=tk.BOTH, expand=True, padx=5, pady=5)
        held_cols = ("Time", "Customer", "Items", "Subtotal")
        self.held_tv = ttk.Treeview(held_frame, columns=held_cols, show='headings', height=6)
        for c, width in zip(held_cols, (70, 110, 50, 100)):
            self.held_tv.heading(c, text=c)
            self.held_tv.column(c, width=width)
        self.held_tv.pack(fill=tk.BOTH, expand=True)
        held_btns = ttk.Frame(held_frame)
        held_btns.pack(fill=tk.X, pady=5)
        ttk.Button(held_btns, text="Retrieve", command=self._retrieve_held, bootstyle="info").pack(side=tk.LEFT, padx=5)
        ttk.Button(held_btns, text="Delete", command=self._discard_held, bootstyle="danger-outline").pack(side=tk.LEFT, padx=5)

        # Status bar
        status = ttk.Label(self.root, textvariable=self.status_var, relief=tk.SUNKEN, anchor=tk.W)
        status.pack(side=tk.BOTTOM, fill=tk.X)

    # --- feedback ---

    def _notify(self, level, message):
        """Toast-style feedback from the cashier system."""
        self._update_status(message)
        if level == "error":
            messagebox.showerror("Error", message)

    def _update_status(self, message):
        self.status_var.set(message)
        logger.debug(f"Status: {message}")

    # --- branches and catalog ---

    def _load_branches(self):
        try:
            self.sys.start()
        except NetworkError as e:
            messagebox.showerror("Network Error", str(e))
        names = [f"{b.name} ({b.id})" for b in self.sys.branches.branches]
        self.branch_combo["values"] = names
        if self.sys.branches.pinned:
            self.branch_combo.configure(state="disabled")
        self._show_branch()
        self.category_combo["values"] = [ALL_CATEGORIES] + [c.name for c in self.sys.categories]

    def _show_branch(self):
        for b in self.sys.branches.branches:
            if b.id == self.sys.branch_id:
                self.branch_var.set(f"{b.name} ({b.id})")
                return
        self.branch_var.set(self.sys.branch_id or "")

    def _on_branch_selected(self, event=None):
        index = self.branch_combo.current()
        if index < 0:
            return
        branch = self.sys.branches.branches[index]
        if self.sys.select_branch(branch.id) and not self.sys.cart.is_empty:
            self._update_status("Branch changed; cart items were checked against the previous branch")

    def _refresh_async(self):
        """Fetch the catalog on a worker thread and apply it on the Tk thread."""
        ticket = self.sys.begin_fetch()
        if not ticket:
            self.sys.fail_fetch(ticket, "no branch selected")
            return
        self._update_status("Loading products...")

        def worker():
            try:
                products = self.sys.api.fetch_products(ticket)
            except NetworkError as e:
                self.root.after(0, lambda: self._fetch_failed(ticket, e))
                return
            self.root.after(0, lambda: self._fetch_done(ticket, products))

        threading.Thread(target=worker, daemon=True).start()

    def _fetch_done(self, ticket, products):
        if self.sys.complete_fetch(ticket, products):
            self._update_status(f"{len(products)} products loaded")
        self._refresh_products()

    def _fetch_failed(self, ticket, error):
        self.sys.fail_fetch(ticket, error)
        self._update_status(f"Could not load products: {error}")

    def _refresh_products(self):
        self.product_tv.delete(*self.product_tv.get_children())
        branch_id = self.sys.branch_id
        for product in self.sys.search(self.search_var.get(), self._selected_category_id()):
            for variant in product.variants:
                stock = variant.stock_for(branch_id)
                line = self.sys.cart.line_for(variant.id)
                in_cart = line.quantity if line else 0
                _, text = stock_status(stock.quantity if stock else 0, in_cart)
                label = format_variant_display(variant.variant_name, variant.display_label)
                price = format_currency(stock.price if stock else 0, self.currency)
                self.product_tv.insert("", "end", iid=variant.id, values=(
                    product.name, label, variant.sku, price, text
                ))

    def _selected_category_id(self):
        index = self.category_combo.current()
        if index <= 0:
            return None
        return self.sys.categories[index - 1].id

    # --- cart ---

    def _selected_cart_id(self):
        selected = self.cart_tv.selection()
        if not selected:
            messagebox.showinfo("Selection", "Please select a cart item")
            return None
        return selected[0]

    def _add_selected_product(self):
        selected = self.product_tv.selection()
        if not selected:
            return
        if self.sys.add_to_cart(selected[0]):
            self._update_status("Added to cart")
        self._refresh_cart()

    def _step_quantity(self, delta):
        variant_id = self._selected_cart_id()
        if variant_id is None:
            return
        line = self.sys.cart.line_for(variant_id)
        if line:
            self.sys.update_quantity(variant_id, line.quantity + delta)
        self._refresh_cart()

    def _edit_cart_quantity(self):
        variant_id = self._selected_cart_id()
        if variant_id is None:
            return
        line = self.sys.cart.line_for(variant_id)
        new_qty = simpledialog.askinteger("Edit Quantity", "Enter new quantity:",
                                          initialvalue=line.quantity, minvalue=0)
        if new_qty is not None:
            self.sys.update_quantity(variant_id, new_qty)
            self._refresh_cart()

    def _remove_selected(self):
        for variant_id in self.cart_tv.selection():
            self.sys.remove_from_cart(variant_id)
        self._refresh_cart()

    def _clear_cart(self):
        if self.sys.cart.is_empty:
            return
        if messagebox.askyesno("Clear Cart", "Are you sure you want to clear the cart?"):
            self.sys.reset_transaction()
            self._load_checkout_fields()
            self._refresh_cart()

    def _refresh_cart(self):
        self.cart_tv.delete(*self.cart_tv.get_children())
        for line in self.sys.cart:
            name = f"{line.product_name} {line.variant_label}".strip()
            self.cart_tv.insert("", "end", iid=line.variant_id, values=(
                name, line.quantity,
                format_currency(line.unit_price, self.currency),
                format_currency(line.line_total, self.currency),
                line.available_stock,
            ), tags=("oversold",) if line.oversold else ())
        self._refresh_products()
        self._update_totals()

    # --- checkout ---

    def _read_number(self, var):
        try:
            return float(var.get() or 0)
        except ValueError:
            return 0

    def _store_checkout_fields(self):
        meta = self.sys.metadata
        meta.customer_name = self.customer_name_var.get().strip()
        meta.customer_phone = self.customer_phone_var.get().strip()
        meta.payment_method = PaymentMethod(self.payment_var.get())
        meta.cash_received = self._read_number(self.cash_var)
        meta.bank_name = self.bank_var.get().strip()
        meta.reference_no = self.reference_var.get().strip()
        meta.discount = self._read_number(self.discount_var)
        meta.discount_type = DiscountType(self.discount_type_var.get())

    def _load_checkout_fields(self):
        meta = self.sys.metadata
        # variable traces must not write half-loaded fields back
        self._loading_fields = True
        try:
            self.customer_name_var.set(meta.customer_name)
            self.customer_phone_var.set(meta.customer_phone)
            self.payment_var.set(PaymentMethod(meta.payment_method).value)
            self.cash_var.set(str(meta.cash_received))
            self.bank_var.set(meta.bank_name)
            self.reference_var.set(meta.reference_no)
            self.discount_var.set(str(meta.discount))
            self.discount_type_var.set(DiscountType(meta.discount_type).value)
        finally:
            self._loading_fields = False
        self._update_totals()

    def _update_totals(self):
        if self._loading_fields:
            return
        self._store_checkout_fields()
        self.subtotal_var.set(format_currency(self.sys.subtotal, self.currency))
        self.discount_amount_var.set(format_currency(self.sys.discount_amount, self.currency))
        self.total_var.set(format_currency(self.sys.total, self.currency))
        self.change_var.set(format_currency(self.sys.change_due, self.currency))

    def _checkout(self):
        self._store_checkout_fields()
        change = self.sys.change_due
        try:
            record = self.sys.checkout()
        except (CheckoutError, NetworkError) as e:
            messagebox.showerror("Checkout Error", str(e))
            return
        number = record.get('transactionNo', '') if isinstance(record, dict) else ''
        message = f"Sale {number} completed." if number else "Sale completed."
        if change:
            message += f"\nChange: {format_currency(change, self.currency)}"
        messagebox.showinfo("Checkout Complete", message)
        self._load_checkout_fields()
        self._refresh_cart()
        self._update_status(f"Checkout complete {number}".strip())

    # --- held transactions ---

    def _hold(self):
        self._store_checkout_fields()
        if self.sys.hold():
            self._load_checkout_fields()
            self._refresh_cart()
            self._refresh_held()

    def _refresh_held(self):
        self.held_tv.delete(*self.held_tv.get_children())
        for held in self.sys.held.list():
            self.held_tv.insert("", "end", iid=held.id, values=(
                held.created_at.strftime("%H:%M"),
                held.customer_name or "-",
                held.item_count,
                format_currency(held.subtotal, self.currency),
            ))

    def _retrieve_held(self):
        selected = self.held_tv.selection()
        if not selected:
            return
        if not self.sys.cart.is_empty and not messagebox.askyesno(
                "Retrieve", "The current cart will be replaced. Continue?"):
            return
        if self.sys.retrieve_held(selected[0]) is None:
            self._update_status("Held transaction not found")
        self._load_checkout_fields()
        self._refresh_cart()
        self._refresh_held()

    def _discard_held(self):
        selected = self.held_tv.selection()
        if selected and messagebox.askyesno("Delete", "Delete the held transaction?"):
            self.sys.discard_held(selected[0])
            self._refresh_held()

    # --- event loop ---

    def _pump_events(self):
        """Apply queued inventory events on the Tk thread."""
        try:
            if self.sys.hub.pump():
                self._refresh_cart()
        finally:
            self.root.after(self.poll_ms, self._pump_events)

    def run(self):
        self.root.after(0, self._load_branches)
        self.root.after(self.poll_ms, self._pump_events)
        self.root.mainloop()
