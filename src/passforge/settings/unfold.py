"""Django Unfold admin configuration."""

from django.urls import reverse_lazy
from django.utils.translation import gettext_lazy as _

from .base import VERSION

# Unfold configuration
UNFOLD = {
    "SITE_TITLE": f"Passforge v{VERSION} Admin",
    "SITE_HEADER": f"Passforge v{VERSION} Administration",
    "SITE_URL": "/",
    "SHOW_HISTORY": False,
    "SHOW_VIEW_ON_SITE": False,
    "SIDEBAR": {
        "show_search": True,
        "show_all_applications": False,
        "navigation": [
            {
                "title": _("Wallet Passes"),
                "separator": True,
                "collapsible": False,
                "items": [
                    {
                        "title": _("Pass Templates"),
                        "icon": "style",
                        "link": reverse_lazy("admin:wallet_passtemplate_changelist"),
                    },
                    {
                        "title": _("Certificates"),
                        "icon": "verified_user",
                        "link": reverse_lazy("admin:wallet_passtypecertificate_changelist"),
                    },
                    {
                        "title": _("Issued Passes"),
                        "icon": "confirmation_number",
                        "link": reverse_lazy("admin:wallet_issuedpass_changelist"),
                    },
                ],
            },
        ],
    },
}
