# File: bateo_ventas/page_selectors.py
LOGIN_PATH = "/web/app.php/Login"
BATEO_VENTAS_PATH = "/web/app.php/bateo_ventas"

LOGIN_USERNAME = "#usuario"
LOGIN_PASSWORD = "#password"
LOGIN_SUBMIT = "#buttonAuth"

# Any of these present means the dashboard has rendered after login.
POST_LOGIN_LANDMARKS = (
    'a#buttonOpenModulo[href="ventas"]',
    "li#modulo_ventas",
)

LOGIN_ERROR = '.alert-danger, .alert[role="alert"], #loginError, .swal2-html-container'

# Dashboard module card and left-nav tree
VENTAS_CARD_BUTTON = 'div.col-6.col-md-4.col-lg-4.col-xl-3.mb-2 a#buttonOpenModulo[href="ventas"]'
MENU_MODULO_VENTAS = "li#modulo_ventas"
MENU_CATEGORIA_REPORTES = "li#categoria_ventasreportes"
MENU_BATEO_LINK = 'li#menubateo_ventas a.nav-link[href="bateo_ventas"]'
MENU_TOGGLE_SUFFIX = " > a.nav-link"
MENU_OPEN_CLASS = "menu-open"

# Bateo de ventas screen
FECHA_INICIO = "#inputBateoVentaFechaInicio"
FECHA_FIN = "#inputBateoVentasFechaFin"
CONSULTAR_BUTTON = "#buttonBateoVentasList"
EXPORT_BUTTON = "#buttonBateoVentasExport"
