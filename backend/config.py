import os
from dotenv import load_dotenv

load_dotenv()
# Render/Heroku hand out "postgres://", SQLAlchemy wants "postgresql://"
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./db_support.db").replace(
    "postgres://", "postgresql://", 1)
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 24 * 60))
ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
CORS_ORIGINS = [o.strip() for o in os.getenv(
    "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",") if o.strip()]

# Vila Velha/ES, web service ABRASF 2.03
NFSE_WS_URL = os.getenv("NFSE_WS_URL",
                        "https://tributacao.vilavelha.es.gov.br/tbw/services/Abrasf23")
NFSE_SOAP_ACTION = "http://nfse.abrasf.org.br/ConsultarNfse"
NFSE_TIMEOUT = float(os.getenv("NFSE_TIMEOUT", 30))  # seconds
NFSE_VERIFY_SSL = os.getenv("NFSE_VERIFY_SSL", "false").lower() in ("1", "true", "yes")

DEFAULT_STATUS = ["Em andamento", "Concluído", "Pendente"]
DEFAULT_PRIORIDADES = ["Baixa", "Média", "Alta", "Urgente"]
STATUS_EM_ANDAMENTO = "Em andamento"
