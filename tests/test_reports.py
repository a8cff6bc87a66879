from datetime import datetime

from models.models import Client


def test_client_report(client, auth, cliente, make_support):
    make_support(datetime(2024, 3, 20, 14), datetime(2024, 3, 20, 16))
    make_support(datetime(2024, 3, 5, 9), datetime(2024, 3, 5, 10))
    make_support(datetime(2024, 4, 1, 9), datetime(2024, 4, 1, 10))

    resp = client.get(f"/api/reports/client/{cliente.id_cliente}", headers=auth,
                      params={"month": 3, "year": 2024})
    assert resp.status_code == 200
    body = resp.json()
    assert body["client"]["nome_cliente"] == "Acme Ltda"
    assert [s["duracao"] for s in body["supports"]] == ["1h", "2h"]


def test_client_report_requires_period(client, auth, cliente):
    resp = client.get(f"/api/reports/client/{cliente.id_cliente}", headers=auth)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Cliente, mês e ano são obrigatórios"

    resp = client.get(f"/api/reports/client/{cliente.id_cliente}", headers=auth,
                      params={"month": 13, "year": 2024})
    assert resp.status_code == 400

    resp = client.get("/api/reports/client/999", headers=auth, params={"month": 3, "year": 2024})
    assert resp.status_code == 404


def test_client_report_pdf(client, auth, cliente, make_support):
    make_support(datetime(2024, 3, 20, 14), datetime(2024, 3, 20, 16),
                 descricao_suporte="Análise de locks " * 40)
    resp = client.get(f"/api/reports/client/{cliente.id_cliente}/pdf", headers=auth,
                      params={"month": 3, "year": 2024})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert 'filename="relatorio-acme-ltda-3-2024.pdf"' in resp.headers["content-disposition"]
    assert resp.content.startswith(b"%PDF")


def test_client_report_pdf_without_supports(client, auth, cliente):
    resp = client.get(f"/api/reports/client/{cliente.id_cliente}/pdf", headers=auth,
                      params={"month": 1, "year": 2023})
    assert resp.status_code == 200
    assert resp.content.startswith(b"%PDF")


def test_hours_control(client, auth, cliente, make_support):
    make_support(datetime(2024, 1, 10, 8), datetime(2024, 1, 10, 20))
    make_support(datetime(2024, 2, 1, 8), datetime(2024, 2, 1, 12))
    make_support(datetime(2023, 12, 31, 8), datetime(2023, 12, 31, 9))

    resp = client.get("/api/reports/hours-control", headers=auth,
                      params={"year": 2024, "clientId": cliente.id_cliente})
    assert resp.status_code == 200
    body = resp.json()
    assert body["cliente"] == "Acme Ltda"
    assert [m["mes"] for m in body["meses"]] == [1, 2]
    jan, fev = body["meses"]
    assert jan["horasUtilizadas"] == "12.00"
    assert jan["saldoMes"] == "-2.00"
    assert fev["saldoAcumulado"] == "4.00"
    assert body["totais"] == {"horasContratadas": "20.00", "horasUtilizadas": "16.00",
                              "saldo": "4.00", "quantidadeAtendimentos": 2}


def test_hours_control_requires_params(client, auth):
    resp = client.get("/api/reports/hours-control", headers=auth, params={"year": 2024})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Ano e cliente são obrigatórios"


def test_hours_control_pdf(client, auth, cliente, make_support):
    make_support(datetime(2024, 1, 10, 8), datetime(2024, 1, 10, 20))
    resp = client.get("/api/reports/hours-control/pdf", headers=auth,
                      params={"year": 2024, "clientId": cliente.id_cliente})
    assert resp.status_code == 200
    assert 'filename="controle-horas-acme-ltda-2024.pdf"' in resp.headers["content-disposition"]
    assert resp.content.startswith(b"%PDF")


def test_pdf_filename_with_non_latin1_name(client, auth, db, make_support):
    filial = Client(nome_cliente='Café – Filial "Sul"', dia_fechamento=5, total_horas_contratadas=4)
    db.add(filial)
    db.commit()
    make_support(datetime(2024, 5, 2, 9), datetime(2024, 5, 2, 11), id_cliente=filial.id_cliente)

    resp = client.get("/api/reports/hours-control/pdf", headers=auth,
                      params={"year": 2024, "clientId": filial.id_cliente})
    assert resp.status_code == 200
    disposition = resp.headers["content-disposition"]
    assert 'filename="controle-horas-cafe-filial-sul-2024.pdf"' in disposition
    assert "filename*=UTF-8''controle-horas-Caf%C3%A9%20%E2%80%93%20Filial%20%22Sul%22-2024.pdf" in disposition

    resp = client.get(f"/api/reports/client/{filial.id_cliente}/pdf", headers=auth,
                      params={"month": 5, "year": 2024})
    assert resp.status_code == 200
    assert 'filename="relatorio-cafe-filial-sul-5-2024.pdf"' in resp.headers["content-disposition"]
    assert resp.content.startswith(b"%PDF")


def test_year_out_of_range(client, auth, cliente):
    for path in ("/api/reports/hours-control", "/api/reports/hours-control/pdf"):
        resp = client.get(path, headers=auth, params={"year": 10000, "clientId": cliente.id_cliente})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Ano inválido"

    resp = client.get(f"/api/reports/client/{cliente.id_cliente}", headers=auth,
                      params={"month": 1, "year": 10000})
    assert resp.status_code == 400
