# marketplace.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale du service de checkout.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe), CORS/hosts
- Expose la politique de frais (table versionnée, devise de base) et les zones de livraison
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _csv_env(name: str, default: str) -> list[str]:
    return [x.strip() for x in os.getenv(name, default).split(",") if x.strip()]

# Supabase: URLs et clés (anon/service)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Stripe: clé secrète (Connect) et secret webhook
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")
STRIPE_API_VERSION = _clean_env(os.getenv("STRIPE_API_VERSION") or "2023-10-16")

# Frais: table versionnée unique (partagée avec les calculateurs d'affichage)
FEE_TABLE_PATH = Path(_clean_env(os.getenv("FEE_TABLE_PATH") or "") or (Path(__file__).resolve().parent / "fees" / "fee_table.json"))
BASE_CURRENCY = _clean_env(os.getenv("BASE_CURRENCY") or "GBP").upper()
# "fallback": devise inconnue => table de BASE_CURRENCY (comportement historique)
# "reject": devise inconnue => erreur InvalidRequest
UNKNOWN_CURRENCY_POLICY = _clean_env(os.getenv("UNKNOWN_CURRENCY_POLICY") or "fallback").lower()

# Livraison: classes de région
DOMESTIC_COUNTRY = _clean_env(os.getenv("DOMESTIC_COUNTRY") or "GB").upper()
EUROPE_COUNTRIES = [c.upper() for c in _csv_env("EUROPE_COUNTRIES", "FR,DE,IT,ES,NL,BE,IE,AT,PT,DK,SE,FI,NO")]

# CORS / hosts
CORS_ORIGINS = _csv_env("CORS_ORIGINS", "*")
ALLOWED_HOSTS = _csv_env("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver")
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
